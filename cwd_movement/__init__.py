# CWD Deer Movement Analysis
"""
Chronic wasting disease (CWD) effects on white-tailed deer movement.
Case-control pairing, movement cleaning, and model fitting for the manuscript.

Project Structure:
    cwd_movement/
    ├── common/      - Shared utilities
    ├── data/        - BLOCK 1: Roster loading and candidate-table construction
    ├── matching/    - BLOCK 2: Randomized greedy case-control pairing
    ├── features/    - BLOCK 3: Movement cleaning, alignment and scaling
    └── models/      - BLOCK 4: Conditional logistic + Bayesian changepoint
"""

__version__ = "0.1.0"
__author__ = "CWD Movement Team"
