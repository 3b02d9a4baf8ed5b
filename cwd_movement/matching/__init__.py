"""Matching module - candidate pool, greedy matcher, trial selection."""

from cwd_movement.matching.pool import (
    CandidatePool,
    CandidateSlice,
    AvailablePool
)

from cwd_movement.matching.greedy import (
    MatchTier,
    Pairing,
    match_cases,
    select_candidate
)

from cwd_movement.matching.trials import (
    TrialResult,
    case_order,
    compare_trials,
    pairing_frame,
    rank_trials,
    run_trial,
    run_trials,
    select_best,
    summarize_pairing,
    trials_frame
)

__all__ = [
    # Pool
    'CandidatePool',
    'CandidateSlice',
    'AvailablePool',
    # Greedy matcher
    'MatchTier',
    'Pairing',
    'match_cases',
    'select_candidate',
    # Trials
    'TrialResult',
    'case_order',
    'compare_trials',
    'pairing_frame',
    'rank_trials',
    'run_trial',
    'run_trials',
    'select_best',
    'summarize_pairing',
    'trials_frame'
]
