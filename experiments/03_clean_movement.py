#!/usr/bin/env python3
"""
Experiment 03: Clean and Align Movement Metrics

- Blanks per-animal outliers in the daily movement metrics
- Aligns each selected pair on a days-before-death axis
- Assigns time strata and standardizes metrics

Output: data/processed/movement_clean.parquet

Usage:
    python experiments/03_clean_movement.py
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pandas as pd

from cwd_movement.config import load_config, get_repo_root
from cwd_movement.data.loader import load_cases, save_table
from cwd_movement.features.movement import (
    align_to_pairs,
    assign_strata,
    coverage_report,
    filter_outliers,
    load_movement,
    scale_metrics,
)


def main():
    parser = argparse.ArgumentParser(description="Clean and align movement metrics")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))

    mv_cfg = cfg.get('movement')
    if mv_cfg is None:
        raise ValueError("Missing movement section in config.")
    metrics = mv_cfg['metrics']

    print("=" * 60)
    print("CWD MOVEMENT - CLEAN & ALIGN")
    print("=" * 60)

    movement = load_movement(root / cfg['data']['raw']['movement'], metrics=metrics)
    print(f"  → {len(movement)} animal-days, {movement['animal_id'].nunique()} animals")

    cleaned, report = filter_outliers(
        movement, metrics,
        method=mv_cfg['outliers']['method'],
        k=float(mv_cfg['outliers']['k'])
    )
    print("\nOutlier screening:")
    for _, row in report.iterrows():
        print(f"  {row['metric']:<22} {row['n_flagged']:>6} flagged ({row['pct_flagged']:.2f}%)")

    cases = load_cases(root / cfg['data']['raw']['cases'])
    pairing = pd.read_csv(root / cfg['data']['processed']['pairing'])

    aligned = align_to_pairs(
        cleaned, pairing, cases, metrics,
        window_days=int(mv_cfg['window_days'])
    )
    aligned = assign_strata(aligned, stratum_days=int(mv_cfg['stratum_days']))
    scaled, scaler = scale_metrics(aligned, metrics)

    # Keep raw values alongside standardized ones
    for col in metrics:
        scaled[f"{col}_raw"] = aligned[col]

    counts = coverage_report(aligned, metrics)
    thin = counts[counts[metrics].min(axis=1) == 0]
    if len(thin) > 0:
        print(f"\n⚠️  {len(thin)} pair/role combinations have no data for some metric")

    output_path = save_table(scaled, root / cfg['data']['processed']['movement'])

    print(f"\nAligned rows: {len(scaled)} across {scaled['pair_id'].nunique()} pairs")
    print(f"Strata: {sorted(scaled['stratum'].unique())}")
    print(f"\n✓ Saved to {output_path}")
    return scaled


if __name__ == "__main__":
    main()
