# soilrisk/analysis/aggregator.py
import logging
from typing import Dict, Iterable, List

from .classifier import classify
from .models import (
    Datapoint, DatapointEvaluation, Standard, UnratedValue, ZoneEvaluation,
    LossRateSettings, DEFAULT_LOSS_RATE_SETTINGS
)
from .rating_engine import rate_with_reason, compute_metric, NOT_RATED

logger = logging.getLogger(__name__)

UNKNOWN_PARAMETER = 'unknown_parameter'
INVALID_DEFINITION = 'invalid_definition'
UNKNOWN_FORMULA = 'unknown_formula'


def aggregate_datapoint(
    datapoint: Datapoint,
    standard: Standard,
    loss_rate_settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
) -> DatapointEvaluation:
    """
    Rate every value of a datapoint and sum the ratings.

    Codes the standard does not define (or has rejected) contribute 0 and
    are reported as unrated. Formula parameters of the standard are
    evaluated over the whole datapoint and reported as metrics.

    Args:
        datapoint: The datapoint to evaluate
        standard: Standard providing parameters and the classification table
        loss_rate_settings: Constants for formula parameters

    Returns:
        DatapointEvaluation with ratings, unrated values, metrics and total
    """
    values = dict(datapoint.values)
    ratings: Dict[str, int] = {}
    unrated: List[UnratedValue] = []

    for code in sorted(values):
        raw_value = values[code]
        if code in standard.rejected:
            unrated.append(UnratedValue(code, raw_value, INVALID_DEFINITION, datapoint.id))
            continue
        parameter = standard.parameters.get(code)
        if parameter is None:
            unrated.append(UnratedValue(code, raw_value, UNKNOWN_PARAMETER, datapoint.id))
            continue

        rating, reason = rate_with_reason(parameter, raw_value)
        if rating is not None:
            ratings[code] = int(rating)
        elif reason != NOT_RATED:
            unrated.append(UnratedValue(code, raw_value, reason, datapoint.id))

    metrics = {}
    for code, parameter in standard.parameters.items():
        if parameter.kind != 'formula':
            continue
        metric = compute_metric(parameter, values, loss_rate_settings)
        if metric is None:
            unrated.append(UnratedValue(code, None, UNKNOWN_FORMULA, datapoint.id))
        else:
            metrics[code] = metric

    total = sum(ratings.values())

    for item in unrated:
        logger.debug(f"{datapoint.id}: {item.code}={item.raw_value!r} unrated ({item.reason})")

    return DatapointEvaluation(
        datapoint_id=datapoint.id,
        timestamp=datapoint.timestamp,
        values=values,
        ratings=ratings,
        unrated=unrated,
        metrics=metrics,
        total_rating=total,
        classification=classify(total, standard.thresholds),
    )


def aggregate_zone(
    datapoints: Iterable[Datapoint],
    standard: Standard,
    loss_rate_settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
) -> ZoneEvaluation:
    """
    Evaluate all datapoints of a zone and combine their totals.

    The combined rating is the sum of the datapoint totals and does not
    depend on the order of the datapoints.
    """
    evaluations = [aggregate_datapoint(dp, standard, loss_rate_settings) for dp in datapoints]
    total = sum(e.total_rating for e in evaluations)

    unrated_count = sum(len(e.unrated) for e in evaluations)
    if unrated_count:
        logger.warning(
            f"{unrated_count} value(s) could not be rated against '{standard.id}' "
            f"and count as 0 in the total"
        )

    return ZoneEvaluation(
        datapoints=evaluations,
        total_rating=total,
        classification=classify(total, standard.thresholds),
    )
