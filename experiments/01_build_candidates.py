#!/usr/bin/env python3
"""
Experiment 01: Build Candidate Table

Builds the dense case x control candidate table from the two rosters:
- CWD-positive mortalities (cases)
- Healthy collared deer (controls)

Output: data/processed/candidate_pairs.parquet

Usage:
    python experiments/01_build_candidates.py
    python experiments/01_build_candidates.py --config config/config_default.yaml
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cwd_movement.config import load_config, get_repo_root
from cwd_movement.data.loader import (
    build_candidate_table,
    load_cases,
    load_controls,
    save_table,
    validate_candidate_table,
)


def main():
    parser = argparse.ArgumentParser(description="Build case x control candidate table")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))

    print("=" * 60)
    print("CWD MOVEMENT - BUILD CANDIDATE TABLE")
    print("=" * 60)

    cases = load_cases(root / cfg['data']['raw']['cases'])
    controls = load_controls(root / cfg['data']['raw']['controls'])
    print(f"  → {len(cases)} cases, {len(controls)} controls")

    window_days = cfg.get('pairing', {}).get('max_interval_days')
    if window_days is None:
        raise ValueError("Missing pairing.max_interval_days in config.")

    table = build_candidate_table(cases, controls, window_days=int(window_days))
    table = validate_candidate_table(table, max_interval=int(window_days))

    output_path = save_table(table, root / cfg['data']['processed']['candidates'])

    print("\n" + "=" * 60)
    print("CANDIDATE SUMMARY")
    print("=" * 60)
    print(f"Total rows: {len(table)}")
    print(f"Sex-matched rows: {table['sex_match'].sum()}")
    print(f"Full-window overlap rows: {(table['interval_match'] == window_days).sum()}")
    print(f"Missing age_diff: {table['age_diff'].isna().sum()}")

    no_sex_match = table.groupby('case_id')['sex_match'].sum()
    no_sex_match = no_sex_match[no_sex_match == 0].index.tolist()
    if no_sex_match:
        print(f"⚠️  Cases with no sex-matched control (will never pair): {no_sex_match}")

    print(f"\n✓ Saved to {output_path}")
    return table


if __name__ == "__main__":
    main()
