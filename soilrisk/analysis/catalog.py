# soilrisk/analysis/catalog.py
import os
import json
import logging
import dataclasses
import numpy as np
from typing import Any, Dict, Iterable, List, Optional

from .errors import CatalogError, NotFoundError
from .models import ClassThreshold, Parameter, RatingBucket, Standard
from .standards import BUILTIN_STANDARDS

logger = logging.getLogger(__name__)

# Process-wide catalog, built on first use
_CATALOG_CACHE: Optional['ParameterCatalog'] = None


def validate_buckets(parameter: Parameter) -> List[str]:
    """
    Check that a parameter's buckets partition its domain.

    Buckets must be ascending, non-empty, contiguous (each upper bound is
    the next lower bound) and span exactly [domain_min, domain_max].

    Args:
        parameter: The parameter to check

    Returns:
        List of issue messages (empty if the buckets are valid)
    """
    issues = []
    if not parameter.buckets:
        return issues

    if parameter.domain_min is None or parameter.domain_max is None:
        issues.append(f"{parameter.code}: bucket rating requires a domain")
        return issues

    lowers = np.array([b.lower for b in parameter.buckets], dtype=float)
    uppers = np.array([b.upper for b in parameter.buckets], dtype=float)

    if not (np.all(np.isfinite(lowers)) and np.all(np.isfinite(uppers))):
        issues.append(f"{parameter.code}: bucket bounds must be finite")
        return issues

    if np.any(uppers <= lowers):
        issues.append(f"{parameter.code}: empty or inverted bucket")
    if len(lowers) > 1 and not np.array_equal(lowers[1:], uppers[:-1]):
        issues.append(f"{parameter.code}: gap or overlap between buckets")
    if lowers[0] != parameter.domain_min:
        issues.append(
            f"{parameter.code}: buckets start at {lowers[0]}, domain starts at {parameter.domain_min}"
        )
    if uppers[-1] != parameter.domain_max:
        issues.append(
            f"{parameter.code}: buckets end at {uppers[-1]}, domain ends at {parameter.domain_max}"
        )
    return issues


def build_parameter(definition: Dict[str, Any]) -> Parameter:
    """Build a Parameter from its plain definition (see standards.py)."""
    try:
        domain = definition.get('domain') or (None, None)
        buckets = tuple(
            RatingBucket(float(lower), float(upper), int(rating))
            for lower, upper, rating in definition.get('buckets', [])
        )
        categories = {str(k): int(v) for k, v in definition.get('categories', {}).items()}
        return Parameter(
            code=str(definition['code']),
            name=str(definition.get('name', definition['code'])),
            unit=str(definition.get('unit', '-')),
            domain_min=None if domain[0] is None else float(domain[0]),
            domain_max=None if domain[1] is None else float(domain[1]),
            buckets=buckets,
            categories=categories,
            formula=definition.get('formula'),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Invalid parameter definition {definition!r}: {e}") from e


def build_standard(definition: Dict[str, Any]) -> Standard:
    """Build an (unvalidated) Standard from its plain definition."""
    try:
        thresholds = tuple(
            ClassThreshold(
                None if row.get('min_total') is None else float(row['min_total']),
                str(row['class']),
                str(row['stress']),
            )
            for row in definition['thresholds']
        )
        parameters = {}
        for param_def in definition.get('parameters', []):
            parameter = build_parameter(param_def)
            parameters[parameter.code] = parameter
        return Standard(
            id=str(definition['id']),
            name=str(definition.get('name', definition['id'])),
            description=str(definition.get('description', '')),
            parameters=parameters,
            thresholds=thresholds,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Invalid standard definition: {e}") from e


def validate_thresholds(standard: Standard) -> List[str]:
    """Thresholds must be strictly descending and end with a catch-all row."""
    issues = []
    if not standard.thresholds:
        return [f"{standard.id}: classification table is empty"]
    bounds = [t.min_total for t in standard.thresholds[:-1]]
    if any(b is None for b in bounds):
        issues.append(f"{standard.id}: only the last classification row may be open")
    elif any(a <= b for a, b in zip(bounds, bounds[1:])):
        issues.append(f"{standard.id}: classification thresholds must be strictly descending")
    if standard.thresholds[-1].min_total is not None:
        issues.append(f"{standard.id}: last classification row must have no lower bound")
    return issues


def load_standards_file(path: str) -> List[Dict[str, Any]]:
    """Read additional standard definitions from a JSON file (a list of definitions)."""
    if not os.path.exists(path):
        logger.error(f"Standards file not found at: {path}")
        raise FileNotFoundError(f"Standards file not found at: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            definitions = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogError(f"Standards file {path} is not valid JSON: {e}") from e
    if not isinstance(definitions, list):
        raise CatalogError(f"Standards file {path} must contain a list of standards")
    return definitions


class ParameterCatalog:
    """
    Read-only registry of standards and their parameters.

    Parameters whose buckets do not partition their domain are refused:
    they are moved to Standard.rejected and never served for rating.
    """
    def __init__(self, definitions: Optional[Iterable[Dict[str, Any]]] = None):
        self._standards: Dict[str, Standard] = {}
        for definition in (BUILTIN_STANDARDS if definitions is None else definitions):
            self.register(build_standard(definition))

    def register(self, standard: Standard) -> Standard:
        """Validate a standard and add it to the catalog. Returns the validated copy."""
        threshold_issues = validate_thresholds(standard)
        if threshold_issues:
            raise CatalogError("; ".join(threshold_issues))

        parameters = {}
        rejected = dict(standard.rejected)
        for code, parameter in standard.parameters.items():
            issues = validate_buckets(parameter)
            if issues:
                for issue in issues:
                    logger.error(f"[{standard.id}] {issue}")
                rejected[code] = "; ".join(issues)
            else:
                parameters[code] = parameter

        validated = dataclasses.replace(standard, parameters=parameters, rejected=rejected)
        if standard.id in self._standards:
            logger.warning(f"Standard '{standard.id}' is redefined, replacing previous definition")
        self._standards[standard.id] = validated
        logger.debug(
            f"Standard '{standard.id}' registered: {len(parameters)} parameters, "
            f"{len(rejected)} rejected"
        )
        return validated

    @property
    def standard_ids(self) -> List[str]:
        return sorted(self._standards)

    def get_standard(self, standard_id: str) -> Standard:
        try:
            return self._standards[standard_id]
        except KeyError:
            raise NotFoundError(f"Standard '{standard_id}' not found in catalog") from None

    def lookup(self, standard_id: str, parameter_code: str) -> Parameter:
        standard = self.get_standard(standard_id)
        if parameter_code in standard.rejected:
            raise NotFoundError(
                f"Parameter '{parameter_code}' of '{standard_id}' is disabled: "
                f"{standard.rejected[parameter_code]}"
            )
        try:
            return standard.parameters[parameter_code]
        except KeyError:
            raise NotFoundError(
                f"Parameter '{parameter_code}' not defined by standard '{standard_id}'"
            ) from None


def get_catalog(standards_file: Optional[str] = None) -> ParameterCatalog:
    """
    Return the process-wide catalog, building it on first call.

    Args:
        standards_file: Optional JSON file with extra standards, only read
            when the catalog is first built.
    """
    global _CATALOG_CACHE

    if _CATALOG_CACHE is not None:
        return _CATALOG_CACHE

    definitions = list(BUILTIN_STANDARDS)
    if standards_file:
        extra = load_standards_file(standards_file)
        logger.info(f"Loaded {len(extra)} standard(s) from {standards_file}")
        definitions.extend(extra)

    _CATALOG_CACHE = ParameterCatalog(definitions)
    return _CATALOG_CACHE


def reset_catalog_cache() -> None:
    global _CATALOG_CACHE
    _CATALOG_CACHE = None
