# soilrisk/analysis/rating_engine.py
import math
import logging
import numpy as np
from typing import Any, Callable, Dict, Optional, Tuple

from .models import Parameter, LossRateSettings, DEFAULT_LOSS_RATE_SETTINGS
from .loss_rate import calculate_zinc_loss_rate

logger = logging.getLogger(__name__)

# Reasons attached to unrated values
UNPARSEABLE = 'unparseable'
NO_MATCHING_CATEGORY = 'no_matching_category'
NOT_RATED = 'not_rated'

# Formula parameters: name -> function(values, settings) returning an object with to_dict()
FORMULAS: Dict[str, Callable] = {
    'zinc_loss_rate': calculate_zinc_loss_rate,
}


def coerce_number(raw_value: Any) -> Optional[float]:
    """
    Convert an operator-entered value to a float.

    Accepts numbers and numeric strings (a decimal comma is allowed).
    Returns None for anything else, including NaN and infinities.
    """
    if raw_value is None or isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, (int, float)):
        number = float(raw_value)
    else:
        text = str(raw_value).strip().replace(',', '.')
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _bucket_rating(parameter: Parameter, value: float) -> int:
    """
    Rating of the bucket containing value.

    Buckets are [lower, upper), the last one closed. Values outside the
    domain clamp to the first or last bucket.
    """
    lowers = np.array([b.lower for b in parameter.buckets], dtype=float)
    index = int(np.searchsorted(lowers, value, side='right')) - 1
    index = min(max(index, 0), len(parameter.buckets) - 1)
    return parameter.buckets[index].rating


def rate_with_reason(parameter: Parameter, raw_value: Any) -> Tuple[Optional[int], Optional[str]]:
    """
    Rate a raw value against its parameter definition.

    Returns:
        (rating, None) when rated, or (None, reason) when the value is unrated.
    """
    if not parameter.is_rated:
        return None, NOT_RATED

    if parameter.categories and raw_value is not None:
        key = str(raw_value).strip()
        if key in parameter.categories:
            return parameter.categories[key], None

    if not parameter.buckets:
        return None, NO_MATCHING_CATEGORY

    value = coerce_number(raw_value)
    if value is None:
        return None, UNPARSEABLE

    if value < parameter.domain_min or value > parameter.domain_max:
        logger.debug(
            f"{parameter.code}: value {value} outside domain "
            f"[{parameter.domain_min}, {parameter.domain_max}], clamping"
        )
    return _bucket_rating(parameter, value), None


def rate(parameter: Parameter, raw_value: Any) -> Optional[int]:
    """Signed integer rating, or None when the value cannot be rated."""
    rating, _ = rate_with_reason(parameter, raw_value)
    return rating


def compute_metric(
    parameter: Parameter,
    values: Dict[str, Any],
    loss_rate_settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
) -> Optional[Dict[str, Any]]:
    """
    Evaluate a formula parameter over all values of a datapoint.

    Returns:
        The metric as a plain dict, or None if the formula is unknown.
    """
    formula = FORMULAS.get(parameter.formula)
    if formula is None:
        logger.error(f"{parameter.code}: unknown formula '{parameter.formula}'")
        return None
    return formula(values, loss_rate_settings).to_dict()
