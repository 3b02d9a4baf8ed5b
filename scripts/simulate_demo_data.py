#!/usr/bin/env python3
"""Write a small synthetic dataset with the same schema as the field data.

The collar data cannot be shared, so this script produces stand-in rosters
and daily movement so that the experiments can be run end to end:
- data/raw/cwd_cases.csv
- data/raw/controls.csv
- data/raw/daily_movement.csv

Cases get a gradual decline in daily distance over their last weeks.

Usage:
  python scripts/simulate_demo_data.py --n-cases 40 --n-controls 120 --seed 1
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
import pandas as pd


def simulate(n_cases: int, n_controls: int, seed: int):
    rng = np.random.default_rng(seed)
    start = pd.Timestamp("2017-01-01")

    case_rows, control_rows, movement = [], [], []

    for i in range(n_cases):
        death = start + pd.Timedelta(days=int(rng.integers(400, 1800)))
        collar_start = death - pd.Timedelta(days=int(rng.integers(60, 700)))
        case_rows.append({
            "case_id": f"CWD{i:03d}",
            "sex": rng.choice(["F", "M"], p=[0.6, 0.4]),
            "death_date": death.date(),
            "collar_start": collar_start.date(),
            "age_at_death": round(float(rng.uniform(1.5, 8.0)), 1),
        })
        days = pd.date_range(collar_start, death)
        before = (death - days).days.to_numpy()
        decline = np.clip(1 - before / 90, 0, 1) * rng.uniform(0.5, 1.5)
        dist = rng.lognormal(np.log(2.5), 0.35, len(days)) - decline
        movement.append(pd.DataFrame({
            "animal_id": case_rows[-1]["case_id"],
            "date": days.date,
            "daily_distance_km": np.clip(dist, 0.05, None),
            "mean_step_length_m": rng.lognormal(np.log(110), 0.3, len(days)) * (1 - 0.3 * decline),
            "daily_range_km2": rng.lognormal(np.log(0.6), 0.5, len(days)),
        }))

    for j in range(n_controls):
        collar_start = start + pd.Timedelta(days=int(rng.integers(0, 1500)))
        collar_end = collar_start + pd.Timedelta(days=int(rng.integers(90, 900)))
        age = rng.uniform(0.5, 7.0) if rng.random() > 0.05 else np.nan
        control_rows.append({
            "control_id": f"CTL{j:03d}",
            "sex": rng.choice(["F", "M"], p=[0.6, 0.4]),
            "collar_start": collar_start.date(),
            "collar_end": collar_end.date(),
            "age_at_start": round(float(age), 1) if not np.isnan(age) else np.nan,
        })
        days = pd.date_range(collar_start, collar_end)
        movement.append(pd.DataFrame({
            "animal_id": control_rows[-1]["control_id"],
            "date": days.date,
            "daily_distance_km": rng.lognormal(np.log(2.5), 0.35, len(days)),
            "mean_step_length_m": rng.lognormal(np.log(110), 0.3, len(days)),
            "daily_range_km2": rng.lognormal(np.log(0.6), 0.5, len(days)),
        }))

    movement = pd.concat(movement, ignore_index=True)
    # A few GPS artefacts for the outlier screen
    spikes = rng.choice(len(movement), size=max(1, len(movement) // 500), replace=False)
    movement.loc[spikes, "daily_distance_km"] *= 25

    return pd.DataFrame(case_rows), pd.DataFrame(control_rows), movement


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate demo rosters and movement data")
    parser.add_argument("--out-dir", type=str, default="data/raw", help="Output directory")
    parser.add_argument("--n-cases", type=int, default=40)
    parser.add_argument("--n-controls", type=int, default=120)
    parser.add_argument("--seed", type=int, default=1)
    args = parser.parse_args()

    if args.n_cases < 1 or args.n_controls < 1:
        raise SystemExit("--n-cases and --n-controls must be positive")

    out = Path(args.out_dir)
    out.mkdir(parents=True, exist_ok=True)

    cases, controls, movement = simulate(args.n_cases, args.n_controls, args.seed)
    cases.to_csv(out / "cwd_cases.csv", index=False)
    controls.to_csv(out / "controls.csv", index=False)
    movement.to_csv(out / "daily_movement.csv", index=False)

    print("Demo data written")
    print(f"  Output dir:     {out}")
    print(f"  Cases:          {len(cases)}")
    print(f"  Controls:       {len(controls)}")
    print(f"  Animal-days:    {len(movement)}")


if __name__ == "__main__":
    main()
