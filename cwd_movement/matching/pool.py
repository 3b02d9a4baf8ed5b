"""
Candidate pool for case-control pairing.

Holds the dense case x control candidate table as per-case arrays, each
pre-sorted by calendar overlap (descending) then age difference (ascending,
missing last). The table itself is immutable; every pairing trial works on
its own AvailablePool.
"""
from dataclasses import dataclass

import numpy as np
import pandas as pd

from cwd_movement.data.loader import WINDOW_DAYS, validate_candidate_table


@dataclass(frozen=True)
class CandidateSlice:
    """Sorted candidate arrays for one case (all indexed alike)."""
    control_idx: np.ndarray
    interval_match: np.ndarray
    age_diff: np.ndarray
    sex_match: np.ndarray


class CandidatePool:
    """Per-case sorted view over a validated candidate table."""

    def __init__(
        self,
        case_ids: np.ndarray,
        coverage_days: np.ndarray,
        control_ids: np.ndarray,
        sorted_control_idx: np.ndarray,
        sorted_interval: np.ndarray,
        sorted_age: np.ndarray,
        sorted_sex: np.ndarray,
    ):
        self.case_ids = case_ids
        self.coverage_days = coverage_days
        self.control_ids = control_ids
        self._control_idx = sorted_control_idx
        self._interval = sorted_interval
        self._age = sorted_age
        self._sex = sorted_sex

    @classmethod
    def from_frame(cls, table: pd.DataFrame, max_interval: int = WINDOW_DAYS) -> 'CandidatePool':
        """
        Build the pool from a candidate table.

        Args:
            table: Dense case x control table (see data.loader.CANDIDATE_COLUMNS)
            max_interval: Largest admissible interval_match value

        Returns:
            CandidatePool
        """
        table = validate_candidate_table(table, max_interval=max_interval)

        case_codes, case_ids = pd.factorize(table['case_id'], sort=True)
        control_codes, control_ids = pd.factorize(table['control_id'], sort=True)
        n_cases, n_controls = len(case_ids), len(control_ids)

        interval = np.zeros((n_cases, n_controls), dtype=int)
        age = np.full((n_cases, n_controls), np.nan)
        sex = np.zeros((n_cases, n_controls), dtype=bool)
        interval[case_codes, control_codes] = table['interval_match'].to_numpy()
        age[case_codes, control_codes] = table['age_diff'].to_numpy()
        sex[case_codes, control_codes] = table['sex_match'].to_numpy()

        coverage = np.zeros(n_cases, dtype=int)
        coverage[case_codes] = table['case_coverage_days'].to_numpy()

        # interval desc, then age asc with missing ages last; stable on roster order
        age_key = np.where(np.isnan(age), np.inf, age)
        order = np.empty((n_cases, n_controls), dtype=int)
        for k in range(n_cases):
            order[k] = np.lexsort((age_key[k], -interval[k]))

        return cls(
            case_ids=np.asarray(case_ids),
            coverage_days=coverage,
            control_ids=np.asarray(control_ids),
            sorted_control_idx=order,
            sorted_interval=np.take_along_axis(interval, order, axis=1),
            sorted_age=np.take_along_axis(age, order, axis=1),
            sorted_sex=np.take_along_axis(sex, order, axis=1),
        )

    @property
    def n_cases(self) -> int:
        return len(self.case_ids)

    @property
    def n_controls(self) -> int:
        return len(self.control_ids)

    def candidates(self, case_idx: int) -> CandidateSlice:
        """Full sorted candidate slice for a case (availability not applied)."""
        return CandidateSlice(
            control_idx=self._control_idx[case_idx],
            interval_match=self._interval[case_idx],
            age_diff=self._age[case_idx],
            sex_match=self._sex[case_idx],
        )

    def new_available(self) -> 'AvailablePool':
        """Fresh working copy with every control available."""
        return AvailablePool(np.ones(self.n_controls, dtype=bool))

    def __repr__(self) -> str:
        return f"CandidatePool(n_cases={self.n_cases}, n_controls={self.n_controls})"


class AvailablePool:
    """Controls still unassigned within one trial."""

    def __init__(self, available: np.ndarray):
        self.available = available
        self.initial_size = int(available.sum())

    @property
    def n_available(self) -> int:
        return int(self.available.sum())

    def mask(self, control_idx: np.ndarray) -> np.ndarray:
        return self.available[control_idx]

    def remove(self, control_idx: int) -> None:
        if not self.available[control_idx]:
            raise ValueError(f"Control index {control_idx} has already been assigned")
        self.available[control_idx] = False
