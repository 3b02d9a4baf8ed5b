#!/usr/bin/env python3
"""
Experiment 05: Bayesian Changepoint Models

For every paired animal, fits a single-changepoint model and a constant
(no-change) model to one movement metric over the pre-mortality window and
compares them by WAIC.

Outputs:
- results/metrics/changepoint_comparison.csv (one row per animal)

Usage:
    python experiments/05_fit_changepoint.py
    python experiments/05_fit_changepoint.py --cases-only
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import numpy as np
import pandas as pd

from cwd_movement.config import load_config, get_repo_root
from cwd_movement.data.loader import save_table
from cwd_movement.models.bayesian.changepoint import fit_and_compare


def main():
    parser = argparse.ArgumentParser(description="Fit changepoint vs constant models")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--cases-only", action="store_true", help="Skip control animals")
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))
    cp_cfg = cfg.get('models', {}).get('changepoint')
    if cp_cfg is None:
        raise ValueError("Missing models.changepoint in config.")
    metric = cp_cfg['metric']

    print("=" * 60)
    print("CWD MOVEMENT - BAYESIAN CHANGEPOINT")
    print("=" * 60)

    df = pd.read_parquet(root / cfg['data']['processed']['movement'])
    if args.cases_only:
        df = df[df['is_case'] == 1]

    # Fit on the original scale; the model standardizes each series itself
    raw_col = f"{metric}_raw" if f"{metric}_raw" in df.columns else metric

    rows = []
    for (pair_id, animal_id, is_case), series in df.groupby(['pair_id', 'animal_id', 'is_case']):
        n_days = int(series[raw_col].notna().sum())
        print(f"\nPair {pair_id} / animal {animal_id} ({'case' if is_case else 'control'}, {n_days} days)")
        if n_days < 10:
            print("  → skipped (fewer than 10 observed days)")
            continue

        out = fit_and_compare(series, raw_col, cp_cfg)
        comparison = out['comparison']
        out['models']['changepoint'].print_diagnostics()

        rows.append({
            'pair_id': pair_id,
            'animal_id': animal_id,
            'is_case': is_case,
            'n_days': n_days,
            'best_model': comparison.index[0],
            'waic_changepoint': comparison.loc['changepoint', 'waic'],
            'waic_constant': comparison.loc['constant', 'waic'],
            'weight_changepoint': comparison.loc['changepoint', 'weight'],
            **out['changepoint'],
        })

    table = pd.DataFrame(rows)
    results_dir = root / cfg['output']['results_dir'] / 'metrics'
    results_file = save_table(table, results_dir / 'changepoint_comparison.csv')

    if len(table) > 0:
        print("\n" + "=" * 60)
        print("CHANGEPOINT SUMMARY")
        print("=" * 60)
        for is_case, group in table.groupby('is_case'):
            label = 'cases' if is_case else 'controls'
            share = np.mean(group['best_model'] == 'changepoint')
            print(f"  {label:<9} n={len(group):<4} changepoint preferred: {100 * share:.1f}%  "
                  f"median change day: {group['change_day_median'].median():.0f}")

    print(f"\n✓ Results saved to {results_file}")
    return table


if __name__ == "__main__":
    main()
