#!/usr/bin/env python3
"""
Experiment 04: Conditional Logistic Regression by Time Stratum

Fits is_case ~ movement metrics | pair_id separately in each stratum of days
before death.

Output: results/metrics/clogit_by_stratum.csv

Usage:
    python experiments/04_fit_clogit.py
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pandas as pd

from cwd_movement.config import load_config, get_repo_root
from cwd_movement.data.loader import save_table
from cwd_movement.models.clogit import StratifiedConditionalLogit


def main():
    parser = argparse.ArgumentParser(description="Fit per-stratum conditional logistic regression")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))
    metrics = cfg['movement']['metrics']

    print("=" * 60)
    print("CWD MOVEMENT - CONDITIONAL LOGISTIC REGRESSION")
    print("=" * 60)

    movement_path = root / cfg['data']['processed']['movement']
    print(f"\nLoading aligned movement from {movement_path}...")
    df = pd.read_parquet(movement_path)
    print(f"  → {len(df)} rows, {df['pair_id'].nunique()} pairs, {df['stratum'].nunique()} strata")

    model = StratifiedConditionalLogit(cfg.get('models', {}).get('clogit', {}))
    model.fit(df, metrics)
    model.print_summary()

    results_dir = root / cfg['output']['results_dir'] / 'metrics'
    results_file = save_table(model.summary(), results_dir / 'clogit_by_stratum.csv')
    model.save(root / cfg['output']['results_dir'] / 'models' / 'clogit.pkl')

    print(f"\n✓ Results saved to {results_file}")
    return model


if __name__ == "__main__":
    main()
