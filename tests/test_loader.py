"""Tests for roster loading, candidate-table construction and validation."""
import math

import numpy as np
import pandas as pd
import pytest

from cwd_movement.data.loader import (
    build_candidate_table,
    calendar_day,
    load_candidate_table,
    load_cases,
    load_controls,
    observation_mask,
    save_table,
    validate_candidate_table,
    window_mask,
)
from tests.conftest import make_candidate_table


@pytest.fixture
def cases():
    return pd.DataFrame({
        'case_id': ['C1'],
        'sex': ['F'],
        'death_date': pd.to_datetime(['2020-06-30']),
        'collar_start': pd.to_datetime(['2020-01-01']),
        'age_at_death': [3.0],
    })


@pytest.fixture
def controls():
    return pd.DataFrame({
        'control_id': ['K1', 'K2', 'K3'],
        'sex': ['F', 'M', 'f '],
        'collar_start': pd.to_datetime(['2018-01-01', '2019-12-01', '2021-03-01']),
        'collar_end': pd.to_datetime(['2019-12-31', '2019-12-31', '2021-03-10']),
        'age_at_start': [2.0, math.nan, 6.0],
    })


def test_calendar_day_folds_leap_day():
    days = calendar_day(['2020-02-28', '2020-02-29', '2020-03-01', '2021-03-01', '2020-12-31'])
    assert list(days) == [58, 58, 59, 59, 364]


def test_window_mask_has_full_length_across_year_end():
    mask = window_mask(pd.to_datetime(['2021-01-10']), window_days=183)
    assert mask.sum() == 183
    assert mask[0, 9] and mask[0, 364]


def test_observation_mask_full_year():
    mask = observation_mask(['2018-05-01', '2019-01-01'], ['2019-06-01', '2019-01-05'])
    assert mask[0].all()
    assert mask[1].sum() == 5


def test_observation_mask_across_leap_day():
    mask = observation_mask(['2020-02-01'], ['2020-03-31'])
    # Feb 29 adds no calendar day, so Apr 1 (day 90) stays unobserved
    assert mask[0].sum() == 59
    assert mask[0, 31] and mask[0, 89]
    assert not mask[0, 90]


def test_interval_match_across_leap_day():
    cases = pd.DataFrame({
        'case_id': ['C1'],
        'sex': ['F'],
        'death_date': pd.to_datetime(['2021-04-01']),
        'collar_start': pd.to_datetime(['2020-10-01']),
        'age_at_death': [3.0],
    })
    controls = pd.DataFrame({
        'control_id': ['K1'],
        'sex': ['F'],
        'collar_start': pd.to_datetime(['2019-09-01']),
        'collar_end': pd.to_datetime(['2020-03-31']),
        'age_at_start': [2.0],
    })

    table = build_candidate_table(cases, controls)

    assert table.loc[0, 'interval_match'] == 182


def test_build_candidate_table(cases, controls):
    table = build_candidate_table(cases, controls)
    table = table.set_index('control_id')

    assert len(table) == 3
    assert (table['case_coverage_days'] == 182).all()

    assert table.loc['K1', 'sex_match']
    assert table.loc['K1', 'interval_match'] == 183
    assert table.loc['K1', 'age_diff'] == 0.0

    assert not table.loc['K2', 'sex_match']
    assert table.loc['K2', 'interval_match'] == 2
    assert math.isnan(table.loc['K2', 'age_diff'])

    assert table.loc['K3', 'sex_match']
    assert table.loc['K3', 'interval_match'] == 10
    assert table.loc['K3', 'age_diff'] == pytest.approx(3.0)


def test_build_candidate_table_is_dense(cases, controls):
    more_cases = pd.concat([cases, cases.assign(case_id='C2', sex=None)], ignore_index=True)
    table = build_candidate_table(more_cases, controls)
    assert len(table) == 6
    assert not table.loc[table['case_id'] == 'C2', 'sex_match'].any()
    validate_candidate_table(table)


def test_validate_rejects_missing_columns(scenario_a_table):
    with pytest.raises(ValueError, match="missing required columns"):
        validate_candidate_table(scenario_a_table.drop(columns=['age_diff']))


def test_validate_rejects_sparse_table(scenario_a_table):
    sparse = scenario_a_table.iloc[1:]
    with pytest.raises(ValueError, match="dense"):
        validate_candidate_table(sparse)


def test_validate_rejects_duplicate_rows(scenario_a_table):
    dup = pd.concat([scenario_a_table, scenario_a_table.iloc[[0]]], ignore_index=True)
    with pytest.raises(ValueError, match="duplicate"):
        validate_candidate_table(dup)


def test_validate_rejects_varying_coverage(scenario_a_table):
    bad = scenario_a_table.copy()
    bad.loc[0, 'case_coverage_days'] = 1
    with pytest.raises(ValueError, match="case_coverage_days"):
        validate_candidate_table(bad)


def test_validate_rejects_interval_out_of_range(scenario_a_table):
    bad = scenario_a_table.copy()
    bad.loc[0, 'interval_match'] = 200
    with pytest.raises(ValueError, match="interval_match"):
        validate_candidate_table(bad)


def test_validate_rejects_negative_age(scenario_a_table):
    bad = scenario_a_table.copy()
    bad.loc[0, 'age_diff'] = -1.0
    with pytest.raises(ValueError, match="age_diff"):
        validate_candidate_table(bad)


def test_validate_accepts_missing_age():
    table = make_candidate_table({'A': 10}, ['X'], {('A', 'X'): (True, 183, math.nan)})
    out = validate_candidate_table(table)
    assert out['sex_match'].dtype == bool
    assert np.isnan(out.loc[0, 'age_diff'])


def test_roster_roundtrip_through_csv(tmp_path, cases, controls):
    cases.to_csv(tmp_path / 'cases.csv', index=False)
    controls.to_csv(tmp_path / 'controls.csv', index=False)

    loaded_cases = load_cases(tmp_path / 'cases.csv')
    loaded_controls = load_controls(tmp_path / 'controls.csv')
    table = build_candidate_table(loaded_cases, loaded_controls)

    path = save_table(table, tmp_path / 'out' / 'candidates.csv')
    reloaded = load_candidate_table(path)
    assert len(reloaded) == 3
    assert reloaded['interval_match'].tolist() == table['interval_match'].tolist()


def test_load_controls_rejects_inverted_dates(tmp_path, controls):
    bad = controls.copy()
    bad.loc[0, 'collar_end'] = pd.Timestamp('2017-01-01')
    bad.to_csv(tmp_path / 'controls.csv', index=False)
    with pytest.raises(ValueError, match="collar_end"):
        load_controls(tmp_path / 'controls.csv')


def test_load_cases_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cases(tmp_path / 'nope.csv')
