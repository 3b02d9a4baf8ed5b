"""
Data Loader for CWD movement analysis - BLOCK 1: Candidate Table

This module handles:
1. Loading the CWD case roster and the healthy control roster
2. Building the dense case x control candidate table
   (sex match, calendar overlap with the pre-mortality window, age difference)
3. Validating a persisted candidate table before pairing
"""
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Optional, Sequence

# Length of the pre-mortality window (6 months) in days
WINDOW_DAYS = 183
DAYS_PER_YEAR = 365
DAYS_PER_AGE_YEAR = 365.25

CASE_COLUMNS = ['case_id', 'sex', 'death_date', 'collar_start', 'age_at_death']
CONTROL_COLUMNS = ['control_id', 'sex', 'collar_start', 'collar_end', 'age_at_start']
CANDIDATE_COLUMNS = [
    'case_id', 'control_id', 'case_coverage_days',
    'sex_match', 'interval_match', 'age_diff'
]


def _require_columns(df: pd.DataFrame, required: Sequence[str], label: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{label} is missing required columns: {missing}")


def _read_table(path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.suffix == '.parquet':
        return pd.read_parquet(path)
    return pd.read_csv(path)


def load_cases(path) -> pd.DataFrame:
    """
    Load the CWD-positive mortality roster.

    Args:
        path: CSV/parquet with case_id, sex, death_date, collar_start, age_at_death

    Returns:
        DataFrame with parsed dates, one row per case
    """
    df = _read_table(path)
    _require_columns(df, CASE_COLUMNS, "Case roster")

    df = df[CASE_COLUMNS].copy()
    df['death_date'] = pd.to_datetime(df['death_date'])
    df['collar_start'] = pd.to_datetime(df['collar_start'])
    df['age_at_death'] = pd.to_numeric(df['age_at_death'], errors='coerce')

    if df['case_id'].duplicated().any():
        dupes = df.loc[df['case_id'].duplicated(), 'case_id'].tolist()
        raise ValueError(f"Duplicate case_id values in case roster: {dupes}")

    return df.sort_values('case_id').reset_index(drop=True)


def load_controls(path) -> pd.DataFrame:
    """
    Load the healthy control roster.

    Args:
        path: CSV/parquet with control_id, sex, collar_start, collar_end, age_at_start

    Returns:
        DataFrame with parsed dates, one row per control
    """
    df = _read_table(path)
    _require_columns(df, CONTROL_COLUMNS, "Control roster")

    df = df[CONTROL_COLUMNS].copy()
    df['collar_start'] = pd.to_datetime(df['collar_start'])
    df['collar_end'] = pd.to_datetime(df['collar_end'])
    df['age_at_start'] = pd.to_numeric(df['age_at_start'], errors='coerce')

    if df['control_id'].duplicated().any():
        dupes = df.loc[df['control_id'].duplicated(), 'control_id'].tolist()
        raise ValueError(f"Duplicate control_id values in control roster: {dupes}")
    if (df['collar_end'] < df['collar_start']).any():
        bad = df.loc[df['collar_end'] < df['collar_start'], 'control_id'].tolist()
        raise ValueError(f"collar_end precedes collar_start for controls: {bad}")

    return df.sort_values('control_id').reset_index(drop=True)


def calendar_day(dates) -> np.ndarray:
    """
    Map dates to a year-agnostic day index 0..364.

    Feb 29 is folded into Feb 28 so every year has 365 calendar days.
    """
    dates = pd.DatetimeIndex(pd.to_datetime(dates))
    doy = dates.dayofyear.to_numpy() - 1
    leap_shift = dates.is_leap_year & (doy >= 59)
    return doy - leap_shift.astype(int)


def window_mask(end_dates, window_days: int = WINDOW_DAYS) -> np.ndarray:
    """
    Calendar-day masks for windows of `window_days` consecutive days ending on each date.

    Returns:
        Boolean array (n_dates, 365)
    """
    end_day = calendar_day(end_dates)
    offsets = np.arange(window_days)
    days = (end_day[:, None] - offsets[None, :]) % DAYS_PER_YEAR

    mask = np.zeros((len(end_day), DAYS_PER_YEAR), dtype=bool)
    rows = np.repeat(np.arange(len(end_day)), window_days)
    mask[rows, days.ravel()] = True
    return mask


def observation_mask(starts, ends) -> np.ndarray:
    """
    Calendar-day masks covering each [start, end] observation period.

    Periods of a full year or longer cover every calendar day.
    """
    starts = pd.DatetimeIndex(pd.to_datetime(starts))
    ends = pd.DatetimeIndex(pd.to_datetime(ends))
    n_days = (ends - starts).days.to_numpy() + 1

    mask = np.zeros((len(starts), DAYS_PER_YEAR), dtype=bool)
    for i, (start, end, length) in enumerate(zip(starts, ends, n_days)):
        if length >= DAYS_PER_YEAR:
            mask[i, :] = True
        else:
            # Feb 29 shares Feb 28's calendar day
            mask[i, calendar_day(pd.date_range(start, end))] = True
    return mask


def build_candidate_table(
    cases: pd.DataFrame,
    controls: pd.DataFrame,
    window_days: int = WINDOW_DAYS
) -> pd.DataFrame:
    """
    Build the dense case x control candidate table.

    For every (case, control) combination computes:
    - case_coverage_days: days from collar deployment to death (inclusive)
    - sex_match: True iff both sexes are recorded and equal
    - interval_match: calendar days shared (year-agnostic) between the case's
      pre-mortality window and the control's observation period
    - age_diff: years between the case's age at death and the control's
      observed age range (0 when inside the range, NaN when unknown)

    Args:
        cases: Output of load_cases()
        controls: Output of load_controls()
        window_days: Length of the pre-mortality window

    Returns:
        DataFrame with CANDIDATE_COLUMNS, n_cases * n_controls rows
    """
    _require_columns(cases, CASE_COLUMNS, "Case roster")
    _require_columns(controls, CONTROL_COLUMNS, "Control roster")
    if len(cases) == 0 or len(controls) == 0:
        raise ValueError("Case and control rosters must both be non-empty")

    n_cases, n_controls = len(cases), len(controls)

    death = pd.to_datetime(cases['death_date'])
    coverage = (death - pd.to_datetime(cases['collar_start'])).dt.days.to_numpy() + 1

    # Missing sex never matches
    case_sex = cases['sex'].fillna('').astype(str).str.strip().str.upper().to_numpy()
    ctrl_sex = controls['sex'].fillna('').astype(str).str.strip().str.upper().to_numpy()
    sex_match = (case_sex[:, None] == ctrl_sex[None, :]) & (case_sex[:, None] != '')

    case_days = window_mask(death, window_days).astype(np.int32)
    ctrl_days = observation_mask(controls['collar_start'], controls['collar_end']).astype(np.int32)
    interval = case_days @ ctrl_days.T

    age_at_death = cases['age_at_death'].to_numpy(dtype=float)
    observed_years = (
        pd.to_datetime(controls['collar_end']) - pd.to_datetime(controls['collar_start'])
    ).dt.days.to_numpy() / DAYS_PER_AGE_YEAR
    age_lo = controls['age_at_start'].to_numpy(dtype=float)
    age_hi = age_lo + observed_years
    below = age_lo[None, :] - age_at_death[:, None]
    above = age_at_death[:, None] - age_hi[None, :]
    age_diff = np.maximum(np.maximum(below, above), 0.0)

    table = pd.DataFrame({
        'case_id': np.repeat(cases['case_id'].to_numpy(), n_controls),
        'control_id': np.tile(controls['control_id'].to_numpy(), n_cases),
        'case_coverage_days': np.repeat(coverage, n_controls).astype(int),
        'sex_match': sex_match.ravel(),
        'interval_match': interval.ravel().astype(int),
        'age_diff': age_diff.ravel(),
    })

    return table


def validate_candidate_table(
    df: pd.DataFrame,
    max_interval: int = WINDOW_DAYS
) -> pd.DataFrame:
    """
    Check that a candidate table is a well-formed dense case x control product.

    Raises ValueError on any shape violation; returns a copy with normalized dtypes.
    """
    _require_columns(df, CANDIDATE_COLUMNS, "Candidate table")
    if len(df) == 0:
        raise ValueError("Candidate table is empty")

    table = df[CANDIDATE_COLUMNS].copy()

    required_values = ['case_id', 'control_id', 'case_coverage_days', 'sex_match', 'interval_match']
    for col in required_values:
        if table[col].isna().any():
            raise ValueError(f"Candidate table has missing values in '{col}'")

    if table.duplicated(subset=['case_id', 'control_id']).any():
        raise ValueError("Candidate table has duplicate (case_id, control_id) rows")

    n_controls = table['control_id'].nunique()
    per_case = table.groupby('case_id')['control_id'].nunique()
    incomplete = per_case[per_case != n_controls]
    if len(incomplete) > 0:
        raise ValueError(
            f"Candidate table is not a dense case x control product: "
            f"{len(incomplete)} case(s) lack the full roster of {n_controls} controls "
            f"(e.g. {incomplete.index[0]!r} has {incomplete.iloc[0]})"
        )

    coverage_levels = table.groupby('case_id')['case_coverage_days'].nunique()
    if (coverage_levels > 1).any():
        bad = coverage_levels[coverage_levels > 1].index.tolist()
        raise ValueError(f"case_coverage_days varies within case(s): {bad}")

    sex_values = set(pd.unique(table['sex_match']))
    if not sex_values <= {True, False, 0, 1}:
        raise ValueError(f"sex_match must be boolean, got values {sorted(map(str, sex_values))}")
    table['sex_match'] = table['sex_match'].astype(bool)

    interval = pd.to_numeric(table['interval_match'], errors='coerce')
    if interval.isna().any() or (interval != np.floor(interval)).any():
        raise ValueError("interval_match must be an integer number of days")
    if (interval < 0).any() or (interval > max_interval).any():
        raise ValueError(f"interval_match must lie in [0, {max_interval}]")
    table['interval_match'] = interval.astype(int)

    age = pd.to_numeric(table['age_diff'], errors='coerce')
    if (age < 0).any():
        raise ValueError("age_diff must be non-negative (or missing)")
    table['age_diff'] = age.astype(float)
    table['case_coverage_days'] = table['case_coverage_days'].astype(int)

    return table


def load_candidate_table(path, max_interval: int = WINDOW_DAYS) -> pd.DataFrame:
    """Load and validate a persisted candidate table (CSV or parquet)."""
    return validate_candidate_table(_read_table(path), max_interval=max_interval)


def save_table(df: pd.DataFrame, path, index: bool = False) -> Path:
    """Write a DataFrame as parquet or CSV depending on the file suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == '.parquet':
        df.to_parquet(path, index=index)
    else:
        df.to_csv(path, index=index)
    return path


if __name__ == "__main__":
    # Quick build from the default config paths
    from cwd_movement.config import load_config, get_repo_root

    cfg = load_config()
    root = get_repo_root()
    table = build_candidate_table(
        load_cases(root / cfg['data']['raw']['cases']),
        load_controls(root / cfg['data']['raw']['controls']),
    )
    print(f"\nCandidate table shape: {table.shape}")
    print(table.head())
