#!/usr/bin/env python3
"""
Experiment 02: Case-Control Pairing

Runs the randomized greedy matcher for `pairing.n_trials` trials, ranks the
resulting pairings and keeps the best one.

Outputs:
- data/processed/selected_pairing.csv (best pairing with candidate fields)
- data/processed/pairing_trials.csv (one summary row per trial, ranked)
- results/metrics/pairing_summary.json

Usage:
    python experiments/02_pair_cases_controls.py
    python experiments/02_pair_cases_controls.py --n-trials 100 --n-jobs 4
"""
import sys
import json
import argparse
from pathlib import Path
from datetime import datetime

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cwd_movement.config import load_config, get_repo_root, PairingConfig
from cwd_movement.data.loader import load_candidate_table, save_table
from cwd_movement.matching import (
    CandidatePool,
    pairing_frame,
    run_trials,
    select_best,
    trials_frame,
)


def main():
    parser = argparse.ArgumentParser(description="Pair CWD cases with healthy controls")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--n-trials", type=int, default=None, help="Override pairing.n_trials")
    parser.add_argument("--n-jobs", type=int, default=None, help="Override pairing.n_jobs")
    parser.add_argument("--seed", type=int, default=None, help="Override pairing.seed")
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))

    # Fail fast on bad settings before anything runs
    pairing_cfg = dict(cfg.get('pairing') or {})
    for key, value in (('n_trials', args.n_trials), ('n_jobs', args.n_jobs), ('seed', args.seed)):
        if value is not None:
            pairing_cfg[key] = value
    settings = PairingConfig.from_dict(pairing_cfg)

    print("=" * 60)
    print("CWD MOVEMENT - CASE-CONTROL PAIRING")
    print("=" * 60)

    candidates_path = root / cfg['data']['processed']['candidates']
    print(f"\nLoading candidates from {candidates_path}...")
    table = load_candidate_table(candidates_path, max_interval=settings.max_interval_days)
    pool = CandidatePool.from_frame(table, max_interval=settings.max_interval_days)
    n_high = int((pool.coverage_days > settings.coverage_threshold).sum())
    print(f"  → {pool.n_cases} cases ({n_high} above {settings.coverage_threshold} coverage days), "
          f"{pool.n_controls} controls")

    results = run_trials(pool, settings, verbose=True)
    best = select_best(results)
    trials = trials_frame(results)
    selected = pairing_frame(table, best)

    print("\n" + "=" * 60)
    print("BEST TRIAL")
    print("=" * 60)
    for key, value in best.summary().items():
        print(f"  {key:<18} {value}")
    if best.unmatched_cases:
        print(f"\n⚠️  Unmatched cases in best trial: {list(best.unmatched_cases)}")

    always_unmatched = set(best.unmatched_cases)
    for r in results:
        always_unmatched &= set(r.unmatched_cases)
    if always_unmatched:
        print(f"⚠️  Unmatched in every trial: {sorted(always_unmatched, key=str)}")

    pairing_path = save_table(selected, root / cfg['data']['processed']['pairing'])
    trials_path = save_table(trials, root / cfg['data']['processed']['trials'])

    results_dir = root / cfg['output']['results_dir'] / 'metrics'
    results_dir.mkdir(parents=True, exist_ok=True)
    summary_file = results_dir / 'pairing_summary.json'
    with open(summary_file, 'w') as f:
        json.dump({
            'timestamp': datetime.now().isoformat(),
            'config': settings.to_dict(),
            'best_trial': best.summary(),
            'unmatched_cases': [str(c) for c in best.unmatched_cases],
            'n_trials_with_best_count': int((trials['n_matched'] == best.n_matched).sum()),
        }, f, indent=2, default=float)

    print(f"\n✓ Selected pairing saved to {pairing_path}")
    print(f"✓ Trial summaries saved to {trials_path}")
    print(f"✓ Summary saved to {summary_file}")
    return selected


if __name__ == "__main__":
    main()
