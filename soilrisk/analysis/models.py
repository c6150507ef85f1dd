# soilrisk/analysis/models.py
"""
Data models for corrosion-risk evaluation.

This module contains the dataclasses shared by the catalog, the rating
engine, the aggregator, the classifier and the version store, separating
data structures from evaluation logic.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple


# --- Catalog ---

@dataclass(frozen=True)
class RatingBucket:
    """Numeric interval [lower, upper) mapped to a rating."""
    lower: float
    upper: float
    rating: int


@dataclass(frozen=True)
class Parameter:
    """
    A measurable quantity defined by a standard.

    A parameter is rated by numeric buckets, by a categorical table, or by
    both (special values such as 'impurities' next to a numeric range).
    Parameters with a formula identifier produce a derived metric instead
    of a rating, and parameters with neither are plain formula inputs.
    """
    code: str
    name: str
    unit: str = '-'
    domain_min: Optional[float] = None
    domain_max: Optional[float] = None
    buckets: Tuple[RatingBucket, ...] = ()
    categories: Dict[str, int] = field(default_factory=dict)
    formula: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.formula:
            return 'formula'
        if self.buckets:
            return 'bucket'
        if self.categories:
            return 'categorical'
        return 'input'

    @property
    def is_rated(self) -> bool:
        return self.kind in ('bucket', 'categorical')


@dataclass(frozen=True)
class ClassThreshold:
    """One row of a classification table. min_total=None matches everything."""
    min_total: Optional[float]
    risk_class: str
    stress: str


@dataclass(frozen=True)
class Classification:
    risk_class: str
    stress: str
    severity: int  # 0 = least severe row of the table


# DIN 50929-3 classes, evaluated top-down
DIN_50929_THRESHOLDS: Tuple[ClassThreshold, ...] = (
    ClassThreshold(0, 'Ia', 'very low'),
    ClassThreshold(-4, 'Ib', 'low'),
    ClassThreshold(-10, 'II', 'medium'),
    ClassThreshold(None, 'III', 'high'),
)


@dataclass
class Standard:
    """A rule set: parameters plus the classification table."""
    id: str
    name: str
    description: str = ''
    parameters: Dict[str, Parameter] = field(default_factory=dict)
    thresholds: Tuple[ClassThreshold, ...] = DIN_50929_THRESHOLDS
    rejected: Dict[str, str] = field(default_factory=dict)


# --- Field data ---

@dataclass
class Datapoint:
    """One measurement event. Values stay editable until an evaluation is created."""
    id: str
    values: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None


@dataclass
class Project:
    id: str
    name: str
    client_ref: Optional[str] = None
    project_type: Optional[str] = None


@dataclass
class Zone:
    id: str
    project_id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class Analyst:
    id: str
    display_name: str
    email: Optional[str] = None


# --- Evaluation results ---

@dataclass(frozen=True)
class UnratedValue:
    """A value that contributed 0 to a total because it could not be rated."""
    code: str
    raw_value: Any
    reason: str  # unknown_parameter | invalid_definition | unparseable | no_matching_category | unknown_formula
    datapoint_id: Optional[str] = None


@dataclass
class LossRateResult:
    """Zinc coating loss-rate family (AS/NZS 2041.1). All zeros means not computable."""
    aggressive: bool = False
    zinc_loss_rate_mean: float = 0.0
    zinc_loss_rate_spread: float = 0.0
    steel_loss_rate: float = 0.0
    service_life_years: int = 0
    required_reserve_mm: float = 0.0
    coating_thickness: float = 0.0

    @property
    def computable(self) -> bool:
        return self.zinc_loss_rate_mean > 0

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['computable'] = self.computable
        return result


@dataclass
class DatapointEvaluation:
    datapoint_id: str
    timestamp: Optional[str]
    values: Dict[str, Any]
    ratings: Dict[str, int]
    unrated: List[UnratedValue]
    metrics: Dict[str, Dict[str, Any]]
    total_rating: int
    classification: Classification

    def to_snapshot(self) -> Dict[str, Any]:
        """Plain, JSON-ready copy used as frozen version content."""
        return {
            'timestamp': self.timestamp,
            'values': dict(self.values),
            'ratings': dict(self.ratings),
            'unrated': [{'code': u.code, 'raw_value': u.raw_value, 'reason': u.reason}
                        for u in self.unrated],
            'metrics': {code: dict(metric) for code, metric in self.metrics.items()},
            'total_rating': self.total_rating,
            'classification': self.classification.risk_class,
            'stress': self.classification.stress,
        }


@dataclass
class ZoneEvaluation:
    datapoints: List[DatapointEvaluation]
    total_rating: int
    classification: Classification

    @property
    def unrated(self) -> List[UnratedValue]:
        return [u for dp in self.datapoints for u in dp.unrated]

    def to_content(self) -> Dict[str, Dict[str, Any]]:
        return {dp.datapoint_id: dp.to_snapshot() for dp in self.datapoints}


# --- Persistence ---

@dataclass(frozen=True)
class AnalysisOutput:
    """Parent of a version lineage: fixed (project, zone, standard, analyst)."""
    id: str
    project_id: str
    zone_id: str
    standard_id: str
    analyst_id: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class EvaluationVersion:
    """Immutable, numbered evaluation snapshot."""
    output_id: str
    version_number: int
    content: Dict[str, Dict[str, Any]]
    total_rating: int
    classification: str
    stress: str
    unrated: Tuple[UnratedValue, ...] = ()
    recommendations: str = ''
    created_by: Optional[str] = None
    created_at: Optional[str] = None


# --- Settings ---

@dataclass
class LossRateSettings:
    """
    Constants of the zinc loss-rate formula (AS/NZS 2041.1:2011).

    Loss rates are in µm/year, thickness in µm.
    """
    # Aggressive soil triggers (any one is enough)
    resistivity_floor: float = 30.0       # Ω·m
    chlorides_ceiling: float = 300.0      # mg/kg
    ph_min: float = 5.5
    ph_max: float = 8.5
    aggressive_soil_type: str = 'undrained'

    # Loss rates
    aggressive_mean: float = 25.0
    aggressive_spread: float = 8.0
    non_aggressive_mean: float = 15.0
    non_aggressive_spread: float = 4.0
    steel_loss_rate: float = 12.0

    default_coating_thickness: float = 85.0

    # Input parameter codes
    resistivity_code: str = 'RESISTIVITY'
    chlorides_code: str = 'CHLORIDES'
    soil_type_code: str = 'SOIL_TYPE'
    ph_code: str = 'PH'
    coating_thickness_code: str = 'COATING_THICKNESS'


DEFAULT_LOSS_RATE_SETTINGS = LossRateSettings()


@dataclass
class EvaluationSettings:
    max_allocation_retries: int = 3


DEFAULT_EVALUATION_SETTINGS = EvaluationSettings()
