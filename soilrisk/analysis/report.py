# soilrisk/analysis/report.py
"""
Report assembly.

Turns a stored evaluation version and its project/zone/standard context
into a self-contained ReportDocument. Everything shown comes from the
frozen version content; the current standard only contributes display
names and units, so old versions stay renderable after catalog changes.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .. import __version__
from .loss_rate import format_loss_rate
from .models import Analyst, EvaluationVersion, Project, Standard, Zone

logger = logging.getLogger(__name__)

REPORT_TITLE = 'Corrosion risk analysis'


@dataclass
class ReportRow:
    datapoint_id: str
    code: str
    name: Optional[str]
    value: Any
    unit: Optional[str]
    rating: Optional[int]


@dataclass
class MetricRow:
    datapoint_id: str
    code: str
    name: Optional[str]
    unit: Optional[str]
    display: str
    computable: bool
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReportDocument:
    header: Dict[str, Any]
    rows: List[ReportRow]
    metrics: List[MetricRow]
    total_rating: int
    classification: str
    stress: str
    recommendations: str
    unrated: List[Dict[str, Any]]
    footer: Dict[str, Any]
    is_preview: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _metric_display(metric: Dict[str, Any]) -> str:
    if not metric.get('computable'):
        return 'not computable'
    if 'zinc_loss_rate_mean' in metric:
        return format_loss_rate(metric['zinc_loss_rate_mean'], metric['zinc_loss_rate_spread'])
    return ', '.join(f"{k}={v}" for k, v in sorted(metric.items()))


def assemble(
    version: EvaluationVersion,
    project: Project,
    zone: Zone,
    standard: Standard,
    analyst: Analyst,
    is_preview: bool = False
) -> ReportDocument:
    """
    Build the report document for one evaluation version.

    Args:
        version: The evaluation version (frozen content)
        project: Project the zone belongs to
        zone: Evaluated zone
        standard: Current snapshot of the standard, used for names and units only
        analyst: Person the report is issued for
        is_preview: Mark the document as a live recompute, not a stored version

    Returns:
        ReportDocument. Codes missing from the standard are shown with
        their raw code and no name or unit.
    """
    rows: List[ReportRow] = []
    metrics: List[MetricRow] = []
    missing_codes = set()

    for datapoint_id in sorted(version.content):
        snapshot = version.content[datapoint_id]
        ratings = snapshot.get('ratings', {})

        for code in sorted(snapshot.get('values', {})):
            parameter = standard.parameters.get(code)
            if parameter is None:
                missing_codes.add(code)
            rows.append(ReportRow(
                datapoint_id=datapoint_id,
                code=code,
                name=parameter.name if parameter else None,
                value=snapshot['values'][code],
                unit=parameter.unit if parameter else None,
                rating=ratings.get(code),
            ))

        for code in sorted(snapshot.get('metrics', {})):
            metric = snapshot['metrics'][code]
            parameter = standard.parameters.get(code)
            metrics.append(MetricRow(
                datapoint_id=datapoint_id,
                code=code,
                name=parameter.name if parameter else None,
                unit=parameter.unit if parameter else None,
                display=_metric_display(metric),
                computable=bool(metric.get('computable')),
                details=dict(metric),
            ))

    if missing_codes:
        logger.info(
            f"Output {version.output_id} v{version.version_number}: codes "
            f"{sorted(missing_codes)} no longer defined by '{standard.id}', rendering raw codes"
        )

    header = {
        'title': REPORT_TITLE,
        'standard_id': standard.id,
        'standard_name': standard.name,
        'project_id': project.id,
        'project_name': project.name,
        'project_type': project.project_type,
        'client_ref': project.client_ref,
        'zone_id': zone.id,
        'zone_name': zone.name,
        'latitude': zone.latitude,
        'longitude': zone.longitude,
        'output_id': version.output_id,
        'version_number': version.version_number,
        'datapoint_count': len(version.content),
    }
    footer = {
        'analyst_name': analyst.display_name,
        'analyst_email': analyst.email,
        'created_by': version.created_by,
        'created_at': version.created_at,
        'engine_version': __version__,
    }

    return ReportDocument(
        header=header,
        rows=rows,
        metrics=metrics,
        total_rating=version.total_rating,
        classification=version.classification,
        stress=version.stress,
        recommendations=version.recommendations or '',
        unrated=[
            {'datapoint_id': u.datapoint_id, 'code': u.code,
             'raw_value': u.raw_value, 'reason': u.reason}
            for u in version.unrated
        ],
        footer=footer,
        is_preview=is_preview,
    )
