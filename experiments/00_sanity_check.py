#!/usr/bin/env python3
"""
Experiment 00: Sanity Check

Quick verification that the project is set up correctly:
1. Config loads and the pairing section validates
2. Raw data files exist
3. Basic imports work
4. Stan model files are present

Usage:
    python experiments/00_sanity_check.py
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def check_config():
    """Test config loading."""
    print("Checking config...", end=" ")
    try:
        from cwd_movement.config import load_config, PairingConfig
        cfg = load_config()
        assert 'data' in cfg
        assert 'models' in cfg
        PairingConfig.from_dict(cfg.get('pairing'))
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def check_data_files():
    """Test data file existence."""
    print("Checking data files...", end=" ")
    try:
        from cwd_movement.config import load_config, get_repo_root
        cfg = load_config()
        root = get_repo_root()

        for key in ('cases', 'controls', 'movement'):
            path = root / cfg['data']['raw'][key]
            assert path.exists(), f"{key} not found: {path}"
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def check_imports():
    """Test key imports."""
    print("Checking imports...", end=" ")
    try:
        import pandas as pd
        import numpy as np
        import yaml
        import sklearn
        import statsmodels
        import cmdstanpy
        print("✓")
        return True
    except ImportError as e:
        print(f"✗ (Missing: {e})")
        return False


def check_stan_models():
    """Test Stan model files."""
    print("Checking Stan models...", end=" ")
    try:
        from cwd_movement.config import get_repo_root
        from cwd_movement.models.bayesian.changepoint import STAN_FILES

        for name in STAN_FILES.values():
            path = get_repo_root() / "stan_models" / name
            assert path.exists(), f"Missing {path}"
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def main():
    print("=" * 60)
    print("CWD MOVEMENT - SANITY CHECK")
    print("=" * 60)

    checks = [
        ("Config", check_config),
        ("Data Files", check_data_files),
        ("Imports", check_imports),
        ("Stan Models", check_stan_models),
    ]

    results = []
    for name, check_fn in checks:
        results.append(check_fn())

    print("\n" + "=" * 60)
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"ALL CHECKS PASSED ({passed}/{total}) ✓")
        print("Ready to proceed with experiments!")
    else:
        print(f"CHECKS FAILED ({passed}/{total}) ✗")
        print("Please fix issues before continuing.")
        sys.exit(1)


if __name__ == "__main__":
    main()
