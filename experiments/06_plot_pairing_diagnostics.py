#!/usr/bin/env python3
"""Experiment 06: Pairing Diagnostics

Plots from the artifacts written by Experiment 02 (no re-pairing):
  - distribution of trial summaries with the selected trial marked
  - overlap and age difference of the selected pairs

Outputs:
  - results/plots/pairing_trials.png
  - results/plots/selected_pairs.png
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt


project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from cwd_movement.config import load_config, get_repo_root


plt.style.use('seaborn-v0_8-darkgrid')
FIGSIZE = (14, 8)
DPI = 150

TRIAL_PANELS = [
    ('n_matched', 'Pairs per trial'),
    ('n_interval_below', 'Pairs below overlap threshold'),
    ('median_interval', 'Median overlap (days)'),
    ('median_age_diff', 'Median age difference (years)'),
]


def _load(path: Path, producer: str) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f'Missing {path}. Run {producer} first.')
    return pd.read_csv(path)


def plot_trials(trials: pd.DataFrame, out_path: Path) -> None:
    best = trials.loc[trials['rank'] == 1].iloc[0]

    fig, axes = plt.subplots(2, 2, figsize=FIGSIZE)
    for ax, (col, title) in zip(axes.ravel(), TRIAL_PANELS):
        values = trials[col].dropna()
        if len(values) == 0:
            ax.set_visible(False)
            continue
        bins = np.arange(values.min(), values.max() + 2) - 0.5 if col.startswith('n_') else 30
        ax.hist(values, bins=bins, color='steelblue', alpha=0.8)
        ax.axvline(best[col], color='crimson', linestyle='--', linewidth=2, label='Selected trial')
        ax.set_title(title)
        ax.set_ylabel('Trials')
        ax.legend(loc='upper left')

    fig.suptitle(f'Case-control pairing: {len(trials)} randomized trials', fontsize=14)
    fig.tight_layout()
    fig.savefig(out_path, dpi=DPI, bbox_inches='tight')
    plt.close(fig)


def plot_selected(pairs: pd.DataFrame, max_interval: int, out_path: Path) -> None:
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(FIGSIZE[0], FIGSIZE[1] / 2))

    ax1.hist(pairs['interval_match'], bins=np.arange(0, max_interval + 8, 7), color='seagreen')
    ax1.set_title('Calendar overlap with pre-mortality window')
    ax1.set_xlabel('Days')
    ax1.set_ylabel('Pairs')

    ages = pairs['age_diff'].dropna()
    ax2.hist(ages, bins=20, color='darkorange')
    ax2.set_title(f'Age difference (missing: {pairs["age_diff"].isna().sum()})')
    ax2.set_xlabel('Years')

    fig.tight_layout()
    fig.savefig(out_path, dpi=DPI, bbox_inches='tight')
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(description='Plot pairing diagnostics')
    parser.add_argument('--config', type=str, default='config/config_default.yaml')
    args = parser.parse_args()

    root = get_repo_root()
    cfg = load_config(str(root / args.config))

    trials = _load(root / cfg['data']['processed']['trials'], 'experiments/02_pair_cases_controls.py')
    pairs = _load(root / cfg['data']['processed']['pairing'], 'experiments/02_pair_cases_controls.py')

    plot_dir = root / cfg['output']['results_dir'] / 'plots'
    plot_dir.mkdir(parents=True, exist_ok=True)

    plot_trials(trials, plot_dir / 'pairing_trials.png')
    plot_selected(pairs, int(cfg['pairing']['max_interval_days']), plot_dir / 'selected_pairs.png')

    print(f'✓ Plots saved to {plot_dir}')


if __name__ == '__main__':
    main()
