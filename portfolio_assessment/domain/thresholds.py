"""Scoring thresholds, category weights and red-flag triggers"""

from typing import Dict, List, Tuple

# A/B/C cutoffs per sub-criterion. "Lower is better" tables are compared
# with <=, "higher is better" tables with >=.
SCORING_THRESHOLDS: Dict[str, Dict[str, Dict[str, float]]] = {
    "portfolio_performance": {
        "default_rate": {"A": 0.02, "B": 0.05, "C": 0.10},
        "delinquency_rate": {"A": 0.03, "B": 0.07, "C": 0.15},
        "recovery_rate": {"A": 0.80, "B": 0.60, "C": 0.40},
    },
    "cash_flow_quality": {
        "avg_dscr": {"A": 1.5, "B": 1.25, "C": 1.0},
        "payment_consistency": {"A": 0.95, "B": 0.90, "C": 0.80},
    },
    "documentation": {
        "performance_history_months": {"A": 24, "B": 12, "C": 6},
    },
    "collateral_coverage": {
        "avg_ltv": {"A": 0.60, "B": 0.70, "C": 0.80},
    },
    "diversification": {
        "largest_exposure": {"A": 0.05, "B": 0.10, "C": 0.20},
        "top10_concentration": {"A": 0.30, "B": 0.50, "C": 0.70},
        "geographic_spread": {"A": 5, "B": 3, "C": 2},
        "property_type_mix": {"A": 4, "B": 3, "C": 2},
    },
}

CATEGORY_WEIGHTS: Dict[str, float] = {
    "portfolio_performance": 0.25,
    "cash_flow_quality": 0.25,
    "documentation": 0.20,
    "collateral_coverage": 0.15,
    "diversification": 0.10,
    "regulatory_readiness": 0.05,
}

RED_FLAG_TRIGGERS = {
    "default_rate_high": 0.10,
    "single_exposure_high": 0.20,
    "avg_ltv_high": 0.80,
    "dscr_low": 1.0,
    "appraisal_old_months": 36,
    "performance_history_short_months": 6,
}

# Highest first; the first floor a score reaches wins.
GRADE_TABLE: List[Tuple[int, str]] = [
    (95, "A"),
    (90, "A-"),
    (85, "B+"),
    (80, "B"),
    (75, "B-"),
    (70, "C+"),
    (65, "C"),
    (60, "C-"),
    (50, "D"),
]
FAILING_GRADE = "F"

# Overall score below which a portfolio without medium/high flags is still conditional
READY_SCORE_FLOOR = 70

# (ready %, conditional %, not ready %)
READINESS_SPLIT: Dict[str, Tuple[int, int, int]] = {
    "ready": (100, 0, 0),
    "conditional": (70, 30, 0),
    "not_ready": (30, 0, 70),
}

ESTIMATED_TIMELINE: Dict[str, str] = {
    "ready": "2-4 weeks",
    "conditional": "4-8 weeks",
    "not_ready": "8+ weeks",
}

# History length (months) at which an assessment is no longer preliminary
COMPLETE_HISTORY_MONTHS = 6
