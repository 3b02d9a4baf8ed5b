"""Data loading and candidate-table construction."""
