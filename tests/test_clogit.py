"""Tests for the per-stratum conditional logistic regression."""
import numpy as np
import pandas as pd
import pytest

from cwd_movement.models.clogit import StratifiedConditionalLogit, complete_pairs


def _paired_movement(n_pairs, shift, stratum, rng, days=3):
    rows = []
    for pair in range(n_pairs):
        for is_case in (1, 0):
            level = rng.normal(shift if is_case else 0.0, 1.0)
            for day in range(days):
                rows.append({
                    'pair_id': f"{stratum}-{pair}",
                    'animal_id': f"{'case' if is_case else 'ctrl'}-{stratum}-{pair}",
                    'is_case': is_case,
                    'stratum': stratum,
                    'days_before_death': stratum * 30 + day,
                    'dist': level + rng.normal(0, 0.1),
                })
    return pd.DataFrame(rows)


def test_complete_pairs_drops_singletons():
    df = pd.DataFrame({
        'pair_id': [1, 1, 2, 3, 3],
        'is_case': [1, 0, 1, 1, 1],
    })
    assert complete_pairs(df)['pair_id'].unique().tolist() == [1]


def test_fit_recovers_direction_of_effect():
    rng = np.random.default_rng(0)
    df = _paired_movement(n_pairs=150, shift=-1.0, stratum=0, rng=rng)

    model = StratifiedConditionalLogit({'min_pairs': 10})
    model.fit(df, ['dist'])
    table = model.summary()

    assert model.is_fitted
    assert len(table) == 1
    row = table.iloc[0]
    assert row['term'] == 'dist'
    assert row['coef'] < 0
    assert row['odds_ratio'] < 1
    assert row['or_lower'] < row['odds_ratio'] < row['or_upper']
    assert row['n_pairs'] == 150
    assert row['p_value'] < 0.05


def test_sparse_stratum_is_skipped_with_warning():
    rng = np.random.default_rng(1)
    df = pd.concat([
        _paired_movement(n_pairs=60, shift=1.0, stratum=0, rng=rng),
        _paired_movement(n_pairs=3, shift=1.0, stratum=1, rng=rng),
    ], ignore_index=True)

    model = StratifiedConditionalLogit({'min_pairs': 10})
    with pytest.warns(UserWarning, match="Stratum 1"):
        model.fit(df, ['dist'])

    table = model.summary()
    assert table['stratum'].unique().tolist() == [0]
    assert 1 in model.skipped_


def test_fit_requires_columns():
    model = StratifiedConditionalLogit()
    with pytest.raises(ValueError, match="Missing columns"):
        model.fit(pd.DataFrame({'pair_id': [1]}), ['dist'])


def test_summary_before_fit_raises():
    with pytest.raises(ValueError, match="not fitted"):
        StratifiedConditionalLogit().summary()


def test_summary_reports_convergence_per_stratum():
    rng = np.random.default_rng(2)
    df = pd.concat([
        _paired_movement(n_pairs=80, shift=-0.8, stratum=0, rng=rng),
        _paired_movement(n_pairs=80, shift=0.5, stratum=1, rng=rng),
    ], ignore_index=True)

    model = StratifiedConditionalLogit({'min_pairs': 10})
    model.fit(df, ['dist'])
    table = model.summary()

    assert table['stratum'].tolist() == [0, 1]
    assert table['converged'].tolist() == [True, True]
    assert model.converged_ == {0: True, 1: True}


def test_fitted_model_reloads_from_disk(tmp_path):
    rng = np.random.default_rng(3)
    df = _paired_movement(n_pairs=40, shift=-1.0, stratum=0, rng=rng)
    model = StratifiedConditionalLogit({'min_pairs': 10}).fit(df, ['dist'])

    path = tmp_path / 'models' / 'clogit.pkl'
    model.save(path)
    loaded = StratifiedConditionalLogit.load(path)

    assert loaded.is_fitted
    pd.testing.assert_frame_equal(loaded.summary(), model.summary())
