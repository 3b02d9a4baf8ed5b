"""Shared fixtures for the pairing and movement tests."""
import math

import numpy as np
import pandas as pd
import pytest


def make_candidate_table(cases, controls, cells):
    """
    Dense candidate table from a sparse description.

    Args:
        cases: {case_id: coverage_days}
        controls: list of control ids
        cells: {(case_id, control_id): (sex_match, interval_match, age_diff)};
            unspecified cells get (False, 0, nan)
    """
    rows = []
    for case_id, coverage in cases.items():
        for control_id in controls:
            sex, interval, age = cells.get((case_id, control_id), (False, 0, math.nan))
            rows.append({
                'case_id': case_id,
                'control_id': control_id,
                'case_coverage_days': coverage,
                'sex_match': sex,
                'interval_match': interval,
                'age_diff': age,
            })
    return pd.DataFrame(rows)


@pytest.fixture
def scenario_a_table():
    """Case A has a single ideal control (X); case B has only fallbacks and cannot take X."""
    return make_candidate_table(
        cases={'A': 200, 'B': 50},
        controls=['X', 'Y', 'Z'],
        cells={
            ('A', 'X'): (True, 183, 0.5),
            ('A', 'Y'): (True, 100, 0.2),
            ('A', 'Z'): (True, 50, 3.0),
            ('B', 'X'): (False, 183, 0.3),
            ('B', 'Y'): (True, 120, 1.0),
            ('B', 'Z'): (True, 60, 0.5),
        },
    )


@pytest.fixture
def random_table():
    """A larger random dense table (20 cases x 30 controls)."""
    rng = np.random.default_rng(7)
    cases = {f"C{i:02d}": int(rng.integers(30, 400)) for i in range(20)}
    controls = [f"K{j:02d}" for j in range(30)]
    cells = {}
    for case_id in cases:
        for control_id in controls:
            interval = int(rng.choice([183, 183, 150, 120, 90, 30, 0]))
            age = float(rng.uniform(0, 8)) if rng.random() > 0.1 else math.nan
            cells[(case_id, control_id)] = (bool(rng.random() > 0.4), interval, age)
    return make_candidate_table(cases, controls, cells)
