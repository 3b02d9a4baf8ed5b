"""Tests for movement cleaning, alignment and scaling."""
import numpy as np
import pandas as pd
import pytest

from cwd_movement.features.movement import (
    align_to_pairs,
    assign_strata,
    filter_outliers,
    load_movement,
    scale_metrics,
)


@pytest.fixture
def daily():
    return pd.DataFrame({
        'animal_id': ['a'] * 6 + ['b'] * 4,
        'date': pd.date_range('2020-01-01', periods=6).append(pd.date_range('2020-01-01', periods=4)),
        'dist': [1.0, 1.0, 1.0, 1.0, 1.0, 100.0, 2.0, 2.5, 3.0, 2.0],
    })


def test_iqr_filter_flags_per_animal(daily):
    cleaned, report = filter_outliers(daily, ['dist'], method='iqr', k=1.5)

    assert len(cleaned) == 9
    assert 100.0 not in cleaned['dist'].tolist()
    assert report.loc[0, 'n_flagged'] == 1
    assert report.loc[0, 'pct_flagged'] == pytest.approx(10.0)


def test_iqr_filter_keeps_rows_with_other_metrics(daily):
    daily['speed'] = 1.0
    cleaned, _ = filter_outliers(daily, ['dist', 'speed'], method='iqr', k=1.5)
    assert len(cleaned) == 10
    assert cleaned['dist'].isna().sum() == 1


def test_zscore_filter(daily):
    cleaned, report = filter_outliers(daily, ['dist'], method='zscore', k=2.0)
    assert report.loc[0, 'n_flagged'] == 1
    assert cleaned['dist'].max() == 3.0


def test_filter_rejects_unknown_method(daily):
    with pytest.raises(ValueError, match="Unknown outlier method"):
        filter_outliers(daily, ['dist'], method='mad')


def test_align_to_pairs():
    movement = pd.DataFrame({
        'animal_id': ['C1', 'C1', 'C1', 'K1', 'K1', 'K1'],
        'date': pd.to_datetime([
            '2020-06-30', '2020-06-20', '2019-12-01',
            '2018-06-25', '2019-06-25', '2018-07-05',
        ]),
        'dist': [1.0, 2.0, 3.0, 4.0, 6.0, 8.0],
    })
    pairing = pd.DataFrame({'pair_id': [1], 'case_id': ['C1'], 'control_id': ['K1']})
    cases = pd.DataFrame({'case_id': ['C1'], 'death_date': pd.to_datetime(['2020-06-30'])})

    aligned = align_to_pairs(movement, pairing, cases, ['dist'])

    case_rows = aligned[aligned['is_case'] == 1].set_index('days_before_death')
    assert sorted(case_rows.index) == [0, 10]
    assert case_rows.loc[10, 'dist'] == 2.0

    ctrl_rows = aligned[aligned['is_case'] == 0]
    assert ctrl_rows['days_before_death'].tolist() == [5]
    assert ctrl_rows['dist'].tolist() == [5.0]
    assert set(aligned['pair_id']) == {1}


def test_align_requires_known_cases():
    movement = pd.DataFrame({'animal_id': ['C9'], 'date': pd.to_datetime(['2020-01-01']), 'dist': [1.0]})
    pairing = pd.DataFrame({'pair_id': [1], 'case_id': ['C9'], 'control_id': ['K1']})
    cases = pd.DataFrame({'case_id': ['C1'], 'death_date': pd.to_datetime(['2020-06-30'])})
    with pytest.raises(ValueError, match="missing from case roster"):
        align_to_pairs(movement, pairing, cases, ['dist'])


def test_assign_strata():
    df = pd.DataFrame({'days_before_death': [0, 29, 30, 182]})
    out = assign_strata(df, stratum_days=30)
    assert out['stratum'].tolist() == [0, 0, 1, 6]
    with pytest.raises(ValueError):
        assign_strata(df, stratum_days=0)


def test_scale_metrics_keeps_missing():
    df = pd.DataFrame({'dist': [1.0, 2.0, 3.0, np.nan]})
    scaled, scaler = scale_metrics(df, ['dist'])
    assert scaled['dist'].iloc[:3].mean() == pytest.approx(0.0)
    assert np.isnan(scaled['dist'].iloc[3])

    again, _ = scale_metrics(df, ['dist'], scaler=scaler)
    assert np.allclose(again['dist'].iloc[:3], scaled['dist'].iloc[:3])


def test_load_movement(tmp_path, daily):
    path = tmp_path / 'movement.csv'
    daily.to_csv(path, index=False)
    loaded = load_movement(path, metrics=['dist'])
    assert pd.api.types.is_datetime64_any_dtype(loaded['date'])
    with pytest.raises(ValueError, match="missing required columns"):
        load_movement(path, metrics=['speed'])
