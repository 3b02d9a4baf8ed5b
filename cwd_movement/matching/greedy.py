"""
Greedy case-control matcher (single trial).

Cases are processed strictly in the given order. Each case takes one control
irrevocably, chosen by tier:

1. Ideal: full pre-mortality overlap and age difference under `ideal_age`
   (uniform random pick among them)
2. Acceptable: full overlap and age difference under `acceptable_age`
   (uniform random pick among them)
3. Fallback: the top of the overlap-desc / age-asc ordering (no random pick)

Cases without any sex-matched control left are skipped.
"""
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from cwd_movement.matching.pool import AvailablePool, CandidatePool


class MatchTier(IntEnum):
    IDEAL = 1
    ACCEPTABLE = 2
    FALLBACK = 3


@dataclass
class Pairing:
    """Assignments from one pass over the case order."""
    case_idx: List[int] = field(default_factory=list)
    control_idx: List[int] = field(default_factory=list)
    interval_match: List[int] = field(default_factory=list)
    age_diff: List[float] = field(default_factory=list)
    tiers: List[MatchTier] = field(default_factory=list)
    unmatched_idx: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.case_idx)

    def pairs(self, pool: CandidatePool) -> List[Tuple[object, object]]:
        """(case_id, control_id) tuples in assignment order."""
        return [
            (pool.case_ids[c], pool.control_ids[k])
            for c, k in zip(self.case_idx, self.control_idx)
        ]


def select_candidate(
    interval: np.ndarray,
    age_diff: np.ndarray,
    rng: np.random.Generator,
    ideal_age: float,
    acceptable_age: float,
    max_interval: int,
) -> Tuple[int, MatchTier]:
    """
    Pick one position from a non-empty, sorted list of eligible candidates.

    Returns:
        (position in the list, tier used)
    """
    full_overlap = interval == max_interval

    # NaN age differences never satisfy the age tiers
    with np.errstate(invalid='ignore'):
        ideal = np.flatnonzero(full_overlap & (age_diff < ideal_age))
        if len(ideal) > 0:
            return int(rng.choice(ideal)), MatchTier.IDEAL

        acceptable = np.flatnonzero(full_overlap & (age_diff < acceptable_age))
        if len(acceptable) > 0:
            return int(rng.choice(acceptable)), MatchTier.ACCEPTABLE

    return 0, MatchTier.FALLBACK


def match_cases(
    pool: CandidatePool,
    order: Sequence[int],
    rng: np.random.Generator,
    ideal_age: float = 1.0,
    acceptable_age: float = 5.0,
    max_interval: int = 183,
    available: Optional[AvailablePool] = None,
) -> Pairing:
    """
    Run the greedy matcher over one case order.

    Args:
        pool: Candidate pool (read-only)
        order: Case indices into pool.case_ids, processed in this order
        rng: Random source for within-tier picks
        ideal_age: Tier 1 age-difference bound (years, strict)
        acceptable_age: Tier 2 age-difference bound (years, strict)
        max_interval: Overlap value counted as a full window
        available: Working copy of the control roster; created if omitted.
            Mutated in place.

    Returns:
        Pairing
    """
    if available is None:
        available = pool.new_available()

    pairing = Pairing()
    for case_idx in order:
        cand = pool.candidates(case_idx)
        eligible = cand.sex_match & available.mask(cand.control_idx)
        if not eligible.any():
            pairing.unmatched_idx.append(int(case_idx))
            continue

        interval = cand.interval_match[eligible]
        age_diff = cand.age_diff[eligible]
        pos, tier = select_candidate(
            interval, age_diff, rng,
            ideal_age=ideal_age,
            acceptable_age=acceptable_age,
            max_interval=max_interval,
        )

        control_idx = int(cand.control_idx[eligible][pos])
        available.remove(control_idx)

        pairing.case_idx.append(int(case_idx))
        pairing.control_idx.append(control_idx)
        pairing.interval_match.append(int(interval[pos]))
        pairing.age_diff.append(float(age_diff[pos]))
        pairing.tiers.append(tier)

    return pairing
