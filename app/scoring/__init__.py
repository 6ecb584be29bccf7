"""
scoring/: Award Scoring Engine

Modules:
    utils.py               - Decimal utilities (half-up rounding, means, weighted sums)
    question_scorer.py     - Per-question weighted scores and stage totals
    ranking_calculator.py  - Jury rubric averages and per-nomination ordering
"""
