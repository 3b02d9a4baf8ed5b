"""
Trial orchestration and selection for case-control pairing.

Runs the greedy matcher over many randomized case orders and keeps the best
pairing. Each trial draws from its own child of
`numpy.random.SeedSequence(seed)`, so a trial's result depends only on the
global seed and its index, never on execution order or worker count.

Ranking is lexicographic (no weighted score):
1. more pairs
2. fewer pairs with overlap below `interval_quality_days`
3. higher median overlap
4. lower median age difference
5. fewer pairs with age difference above `age_quality_years`
then lowest trial index.
"""
import functools
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from cwd_movement.config import PairingConfig
from cwd_movement.matching.greedy import MatchTier, Pairing, match_cases
from cwd_movement.matching.pool import CandidatePool


@dataclass(frozen=True)
class TrialResult:
    """One trial's pairing plus its quality summary."""
    trial_index: int
    pairs: Tuple[Tuple[object, object], ...]
    n_matched: int
    n_unmatched: int
    median_interval: float
    n_interval_below: int
    median_age_diff: float
    n_age_above: int
    n_ideal: int = 0
    n_acceptable: int = 0
    n_fallback: int = 0
    unmatched_cases: Tuple[object, ...] = ()

    def summary(self) -> dict:
        """Ranking statistics as a flat dict (one row of the trials table)."""
        return {
            'trial_index': self.trial_index,
            'n_matched': self.n_matched,
            'n_unmatched': self.n_unmatched,
            'median_interval': self.median_interval,
            'n_interval_below': self.n_interval_below,
            'median_age_diff': self.median_age_diff,
            'n_age_above': self.n_age_above,
            'n_ideal': self.n_ideal,
            'n_acceptable': self.n_acceptable,
            'n_fallback': self.n_fallback,
        }


def case_order(
    pool: CandidatePool,
    rng: np.random.Generator,
    coverage_threshold: float
) -> np.ndarray:
    """
    Randomized processing order: well-covered cases first.

    Cases with coverage above the threshold are shuffled and placed before
    the (separately shuffled) cases at or below it.
    """
    high = np.flatnonzero(pool.coverage_days > coverage_threshold)
    low = np.flatnonzero(pool.coverage_days <= coverage_threshold)
    return np.concatenate([rng.permutation(high), rng.permutation(low)])


def summarize_pairing(
    pool: CandidatePool,
    pairing: Pairing,
    trial_index: int,
    interval_quality_days: float,
    age_quality_years: float
) -> TrialResult:
    """Compute the ranking statistics for one pairing."""
    interval = np.asarray(pairing.interval_match, dtype=float)
    age = np.asarray(pairing.age_diff, dtype=float)
    known_age = age[~np.isnan(age)]
    tiers = list(pairing.tiers)

    return TrialResult(
        trial_index=trial_index,
        pairs=tuple(pairing.pairs(pool)),
        n_matched=len(pairing),
        n_unmatched=len(pairing.unmatched_idx),
        median_interval=float(np.median(interval)) if len(interval) else math.nan,
        n_interval_below=int((interval < interval_quality_days).sum()),
        median_age_diff=float(np.median(known_age)) if len(known_age) else math.nan,
        n_age_above=int((known_age > age_quality_years).sum()),
        n_ideal=tiers.count(MatchTier.IDEAL),
        n_acceptable=tiers.count(MatchTier.ACCEPTABLE),
        n_fallback=tiers.count(MatchTier.FALLBACK),
        unmatched_cases=tuple(pool.case_ids[i] for i in pairing.unmatched_idx),
    )


def run_trial(
    pool: CandidatePool,
    trial_index: int,
    seed_seq: np.random.SeedSequence,
    config: PairingConfig
) -> TrialResult:
    """Run one randomized greedy pass with its own random stream."""
    rng = np.random.default_rng(seed_seq)
    order = case_order(pool, rng, config.coverage_threshold)
    pairing = match_cases(
        pool, order, rng,
        ideal_age=config.ideal_age_years,
        acceptable_age=config.acceptable_age_years,
        max_interval=config.max_interval_days,
    )
    return summarize_pairing(
        pool, pairing, trial_index,
        interval_quality_days=config.interval_quality_days,
        age_quality_years=config.age_quality_years,
    )


def _run_trial_args(args):
    return run_trial(*args)


def run_trials(
    pool: CandidatePool,
    config: PairingConfig,
    n_jobs: Optional[int] = None,
    verbose: bool = False
) -> List[TrialResult]:
    """
    Run config.n_trials independent trials.

    Args:
        pool: Candidate pool shared read-only by all trials
        config: Validated pairing settings
        n_jobs: Worker processes (defaults to config.n_jobs); 1 runs serially
        verbose: Print progress

    Returns:
        TrialResults ordered by trial index
    """
    n_jobs = config.n_jobs if n_jobs is None else n_jobs
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be >= 1, got {n_jobs}")

    children = np.random.SeedSequence(config.seed).spawn(config.n_trials)
    jobs = [(pool, i, child, config) for i, child in enumerate(children)]

    if verbose:
        print(f"Running {config.n_trials} pairing trials "
              f"({pool.n_cases} cases, {pool.n_controls} controls, n_jobs={n_jobs})...")

    if n_jobs == 1:
        results = [_run_trial_args(job) for job in jobs]
    else:
        chunksize = max(1, len(jobs) // (4 * n_jobs))
        with ProcessPoolExecutor(max_workers=n_jobs) as executor:
            # map() yields in submission order
            results = list(executor.map(_run_trial_args, jobs, chunksize=chunksize))

    if verbose:
        matched = [r.n_matched for r in results]
        print(f"  → matched per trial: min={min(matched)}, max={max(matched)}")

    return results


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _nan_last(value: float, maximize: bool) -> float:
    if math.isnan(value):
        return -math.inf if maximize else math.inf
    return value


def compare_trials(a: TrialResult, b: TrialResult) -> int:
    """
    Lexicographic comparator: negative if `a` ranks ahead of `b`.

    Each criterion is only consulted when all earlier ones tie.
    """
    criteria = (
        _cmp(b.n_matched, a.n_matched),
        _cmp(a.n_interval_below, b.n_interval_below),
        _cmp(_nan_last(b.median_interval, True), _nan_last(a.median_interval, True)),
        _cmp(_nan_last(a.median_age_diff, False), _nan_last(b.median_age_diff, False)),
        _cmp(a.n_age_above, b.n_age_above),
        _cmp(a.trial_index, b.trial_index),
    )
    for result in criteria:
        if result != 0:
            return result
    return 0


def rank_trials(results: Iterable[TrialResult]) -> List[TrialResult]:
    """Best trial first."""
    return sorted(results, key=functools.cmp_to_key(compare_trials))


def select_best(results: Iterable[TrialResult]) -> TrialResult:
    """Top-ranked trial."""
    results = list(results)
    if not results:
        raise ValueError("No trial results to select from")
    return functools.reduce(
        lambda best, r: r if compare_trials(r, best) < 0 else best, results
    )


def trials_frame(results: Iterable[TrialResult]) -> pd.DataFrame:
    """One row per trial with its ranking statistics and final rank (1 = best)."""
    ranked = rank_trials(results)
    df = pd.DataFrame([r.summary() for r in ranked])
    if len(df) > 0:
        df.insert(0, 'rank', np.arange(1, len(df) + 1))
    return df


def pairing_frame(table: pd.DataFrame, result: TrialResult) -> pd.DataFrame:
    """
    Selected pairs joined back to their full candidate records.

    Rows keep assignment order; `pair_id` numbers the pairs from 1.
    """
    pairs = pd.DataFrame(list(result.pairs), columns=['case_id', 'control_id'])
    pairs.insert(0, 'pair_id', np.arange(1, len(pairs) + 1))
    merged = pairs.merge(table, on=['case_id', 'control_id'], how='left', validate='one_to_one')
    return merged
