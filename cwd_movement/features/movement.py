"""
Movement Cleaning for CWD analysis - BLOCK 3

Daily movement metrics per collared animal are:
1. Screened for outliers (per animal, per metric)
2. Aligned to the selected case-control pairs on a days-before-death axis
   (controls are aligned year-agnostically on the case's death calendar day)
3. Binned into time strata and standardized for model fitting
"""
import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from sklearn.preprocessing import StandardScaler

from cwd_movement.data.loader import DAYS_PER_YEAR, WINDOW_DAYS, calendar_day


def load_movement(path, metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Load daily movement metrics.

    Args:
        path: CSV/parquet with animal_id, date and one column per metric
        metrics: Metric columns that must be present

    Returns:
        DataFrame sorted by animal_id, date
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Movement file not found: {path}")
    df = pd.read_parquet(path) if path.suffix == '.parquet' else pd.read_csv(path)

    required = ['animal_id', 'date'] + list(metrics or [])
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Movement data is missing required columns: {missing}")

    df['date'] = pd.to_datetime(df['date'])
    for col in metrics or []:
        df[col] = pd.to_numeric(df[col], errors='coerce')

    return df.sort_values(['animal_id', 'date']).reset_index(drop=True)


def filter_outliers(
    df: pd.DataFrame,
    metrics: Sequence[str],
    method: str = "iqr",
    k: float = 3.0,
    group_col: str = 'animal_id'
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Blank out per-animal outliers in each metric.

    Fences are computed within each animal:
    - 'iqr': outside [Q1 - k*IQR, Q3 + k*IQR]
    - 'zscore': |x - mean| > k * std

    Rows left with no metric values are dropped.

    Returns:
        (cleaned DataFrame, report with n_flagged / pct_flagged per metric)
    """
    if k <= 0:
        raise ValueError(f"Outlier multiplier k must be positive, got {k}")

    df = df.copy()
    grouped = df.groupby(group_col)
    report = []

    for col in metrics:
        values = df[col]
        if method == "iqr":
            q1 = grouped[col].transform(lambda s: s.quantile(0.25))
            q3 = grouped[col].transform(lambda s: s.quantile(0.75))
            iqr = q3 - q1
            flagged = (values < q1 - k * iqr) | (values > q3 + k * iqr)
        elif method == "zscore":
            mean = grouped[col].transform('mean')
            std = grouped[col].transform('std')
            flagged = ((values - mean).abs() > k * std) & (std > 0)
        else:
            raise ValueError(f"Unknown outlier method: {method}")

        n_valid = int(values.notna().sum())
        n_flagged = int(flagged.sum())
        df.loc[flagged, col] = np.nan
        report.append({
            'metric': col,
            'n_valid': n_valid,
            'n_flagged': n_flagged,
            'pct_flagged': 100 * n_flagged / n_valid if n_valid else 0.0,
        })

    df = df.dropna(subset=list(metrics), how='all').reset_index(drop=True)
    return df, pd.DataFrame(report)


def align_to_pairs(
    movement: pd.DataFrame,
    pairing: pd.DataFrame,
    cases: pd.DataFrame,
    metrics: Sequence[str],
    window_days: int = WINDOW_DAYS
) -> pd.DataFrame:
    """
    Put each pair's case and control on a common days-before-death axis.

    Cases use their actual death date. Controls are aligned on the case's
    death calendar day regardless of year; when a control was tracked over
    the same calendar days in several years those days are averaged.

    Args:
        movement: Cleaned daily metrics (animal_id, date, metrics)
        pairing: Selected pairs (pair_id, case_id, control_id)
        cases: Case roster with case_id, death_date
        metrics: Metric columns to carry
        window_days: Days before death to keep (0 = day of death)

    Returns:
        DataFrame with pair_id, animal_id, is_case, days_before_death, metrics
    """
    death = pairing[['pair_id', 'case_id', 'control_id']].merge(
        cases[['case_id', 'death_date']], on='case_id', how='left'
    )
    if death['death_date'].isna().any():
        missing = death.loc[death['death_date'].isna(), 'case_id'].tolist()
        raise ValueError(f"Paired cases missing from case roster: {missing}")
    death['death_date'] = pd.to_datetime(death['death_date'])

    cols = ['animal_id', 'date'] + list(metrics)

    case_rows = movement[cols].merge(
        death[['pair_id', 'case_id', 'death_date']],
        left_on='animal_id', right_on='case_id', how='inner'
    )
    case_rows['days_before_death'] = (case_rows['death_date'] - case_rows['date']).dt.days
    case_rows['is_case'] = 1

    ctrl_rows = movement[cols].merge(
        death[['pair_id', 'control_id', 'death_date']],
        left_on='animal_id', right_on='control_id', how='inner'
    )
    ctrl_rows['days_before_death'] = (
        calendar_day(ctrl_rows['death_date']) - calendar_day(ctrl_rows['date'])
    ) % DAYS_PER_YEAR
    ctrl_rows['is_case'] = 0

    keep = ['pair_id', 'animal_id', 'is_case', 'days_before_death'] + list(metrics)
    aligned = pd.concat([case_rows[keep], ctrl_rows[keep]], ignore_index=True)
    in_window = (aligned['days_before_death'] >= 0) & (aligned['days_before_death'] < window_days)
    aligned = aligned[in_window]

    aligned = (
        aligned
        .groupby(['pair_id', 'animal_id', 'is_case', 'days_before_death'], as_index=False)[list(metrics)]
        .mean()
    )
    return aligned.sort_values(['pair_id', 'is_case', 'days_before_death'],
                               ascending=[True, False, True]).reset_index(drop=True)


def assign_strata(df: pd.DataFrame, stratum_days: int = 30) -> pd.DataFrame:
    """
    Add integer `stratum` column: 0 covers the `stratum_days` closest to death.
    """
    if stratum_days <= 0:
        raise ValueError(f"stratum_days must be positive, got {stratum_days}")
    df = df.copy()
    df['stratum'] = (df['days_before_death'] // stratum_days).astype(int)
    return df


def scale_metrics(
    df: pd.DataFrame,
    metrics: Sequence[str],
    scaler: Optional[StandardScaler] = None
) -> Tuple[pd.DataFrame, StandardScaler]:
    """
    Standardize metric columns (missing values stay missing).

    Args:
        df: Aligned movement data
        metrics: Columns to scale
        scaler: Already-fitted scaler to reuse; fitted on df if omitted

    Returns:
        (scaled copy, fitted scaler)
    """
    df = df.copy()
    values = df[list(metrics)].to_numpy(dtype=float)
    if scaler is None:
        scaler = StandardScaler().fit(values)
    df[list(metrics)] = scaler.transform(values)
    return df, scaler


def coverage_report(aligned: pd.DataFrame, metrics: List[str]) -> pd.DataFrame:
    """Days with data per pair and role, for checking alignment gaps."""
    return (
        aligned
        .groupby(['pair_id', 'is_case'])[metrics]
        .count()
        .reset_index()
    )
