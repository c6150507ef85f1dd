# soilrisk/analysis/classifier.py
import logging
from typing import Sequence

from .models import ClassThreshold, Classification, DIN_50929_THRESHOLDS

logger = logging.getLogger(__name__)


def classify(
    total_rating: float,
    thresholds: Sequence[ClassThreshold] = DIN_50929_THRESHOLDS
) -> Classification:
    """
    Assign a risk class and stress label to a total rating.

    Rows are evaluated top-down and the first row whose min_total is at or
    below the total wins. A row without min_total matches any total.

    Args:
        total_rating: Aggregated rating of a datapoint or zone
        thresholds: Classification table of the standard in use

    Returns:
        Classification with the row position as severity (0 = least severe)
    """
    for severity, row in enumerate(thresholds):
        if row.min_total is None or total_rating >= row.min_total:
            return Classification(row.risk_class, row.stress, severity)

    # Tables are validated to end with an open row; keep the worst class anyway
    last = thresholds[-1]
    logger.warning(f"No classification row matched total {total_rating}, using '{last.risk_class}'")
    return Classification(last.risk_class, last.stress, len(thresholds) - 1)
