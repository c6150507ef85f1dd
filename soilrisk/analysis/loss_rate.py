# soilrisk/analysis/loss_rate.py
"""
Zinc coating loss rate and steel reserve after AS/NZS 2041.1:2011.

The soil is aggressive when any single trigger applies (low resistivity,
high chlorides, pH outside the neutral band, undrained soil). The mean
zinc loss rate of the soil class gives the coating service life, and the
steel loss over that life gives the required steel reserve.
"""
import math
import logging
from typing import Any, Dict, Optional

from .models import LossRateResult, LossRateSettings, DEFAULT_LOSS_RATE_SETTINGS

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().replace(',', '.'))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def is_aggressive_soil(
    resistivity: float, chlorides: float, ph: float, soil_type: Optional[str],
    settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
) -> bool:
    """Boolean OR of the aggressive-soil triggers. No weighting."""
    return (
        resistivity < settings.resistivity_floor or
        chlorides > settings.chlorides_ceiling or
        ph < settings.ph_min or
        ph > settings.ph_max or
        soil_type == settings.aggressive_soil_type
    )


def calculate_zinc_loss_rate(
    values: Dict[str, Any],
    settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
) -> LossRateResult:
    """
    Calculate the zinc loss-rate family for one set of soil values.

    Args:
        values: Raw values keyed by parameter code
        settings: Formula constants and input parameter codes

    Returns:
        LossRateResult. Never raises on bad input: an all-zero result
        (computable == False) is returned instead.
    """
    resistivity = _to_float(values.get(settings.resistivity_code))
    chlorides = _to_float(values.get(settings.chlorides_code))
    ph = _to_float(values.get(settings.ph_code))
    soil_type = values.get(settings.soil_type_code)
    soil_type = str(soil_type).strip() if soil_type is not None else None

    if resistivity is None or chlorides is None or ph is None:
        logger.warning(
            f"Invalid numeric inputs for zinc loss calculation: "
            f"resistivity={values.get(settings.resistivity_code)!r}, "
            f"chlorides={values.get(settings.chlorides_code)!r}, "
            f"pH={values.get(settings.ph_code)!r}"
        )
        return LossRateResult()

    raw_thickness = values.get(settings.coating_thickness_code)
    if raw_thickness is None or str(raw_thickness).strip() == '':
        coating_thickness = settings.default_coating_thickness
    else:
        coating_thickness = _to_float(raw_thickness)
        if coating_thickness is None or coating_thickness < 0:
            logger.warning(f"Invalid coating thickness {raw_thickness!r}")
            return LossRateResult()

    aggressive = is_aggressive_soil(resistivity, chlorides, ph, soil_type, settings)
    if aggressive:
        mean, spread = settings.aggressive_mean, settings.aggressive_spread
    else:
        mean, spread = settings.non_aggressive_mean, settings.non_aggressive_spread

    if mean <= 0:
        logger.error(f"Zinc loss rate must be positive, got {mean}")
        return LossRateResult()

    service_life = math.floor(coating_thickness / mean)
    required_reserve = round(settings.steel_loss_rate * service_life / 1000, 3)

    logger.debug(
        f"Zinc loss: aggressive={aggressive}, rate={mean}±{spread}, "
        f"thickness={coating_thickness}, life={service_life}y, reserve={required_reserve}mm"
    )

    return LossRateResult(
        aggressive=aggressive,
        zinc_loss_rate_mean=mean,
        zinc_loss_rate_spread=spread,
        steel_loss_rate=settings.steel_loss_rate,
        service_life_years=service_life,
        required_reserve_mm=required_reserve,
        coating_thickness=coating_thickness,
    )


def format_loss_rate(mean: float, spread: float) -> str:
    """Format a loss rate for display, e.g. '15 ± 4 [μm/year]'."""
    return f"{mean:g} ± {spread:g} [μm/year]"
