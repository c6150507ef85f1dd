"""Evaluation workflow: the entry points the application and the CLI call."""
import uuid
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from ..analysis.aggregator import aggregate_zone
from ..analysis.errors import NotFoundError, ValidationError, VersionConflictError
from ..analysis.models import (
    AnalysisOutput, Analyst, Datapoint, EvaluationVersion, Project, Standard, Zone
)
from ..analysis.report import ReportDocument, assemble
from ..services.logging_config import get_output_logger
from ..services.version_store import EvaluationVersionStore

logger = logging.getLogger(__name__)


@dataclass
class ReportContext:
    project: Project
    zone: Zone
    standard: Standard
    analyst: Analyst


def _require_id(value, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Malformed {label}: {value!r}")
    return value.strip()


class EvaluationService:
    """
    Runs evaluations and serves stored versions and reports.

    Args:
        store: Version store
        project_source: Object with fetch_project, fetch_zone and fetch_datapoints
        standard_source: Object with fetch_standard
        identity_provider: Object with current_user
    """
    def __init__(self, store: EvaluationVersionStore, project_source, standard_source, identity_provider):
        self.store = store
        self.project_source = project_source
        self.standard_source = standard_source
        self.identity_provider = identity_provider

    def _resolve(self, zone_id: str, standard_id: str,
                 datapoint_ids: Sequence[str]) -> Tuple[Zone, Standard, List[Datapoint]]:
        """Validates the references of an evaluation request and loads its inputs."""
        zone_id = _require_id(zone_id, 'zone id')
        standard_id = _require_id(standard_id, 'standard id')
        if not datapoint_ids:
            raise ValidationError("Select at least one datapoint to evaluate")

        wanted = []
        for dp_id in datapoint_ids:
            dp_id = _require_id(dp_id, 'datapoint id')
            if dp_id not in wanted:
                wanted.append(dp_id)

        zone = self.project_source.fetch_zone(zone_id)
        if zone is None:
            raise ValidationError(f"Unknown zone '{zone_id}'")

        try:
            standard = self.standard_source.fetch_standard(standard_id)
        except NotFoundError as e:
            raise ValidationError(f"Unknown standard '{standard_id}'") from e

        available = {dp.id: dp for dp in self.project_source.fetch_datapoints(zone_id)}
        missing = [dp_id for dp_id in wanted if dp_id not in available]
        if missing:
            raise ValidationError(f"Datapoints {missing} do not belong to zone '{zone_id}'")

        return zone, standard, [available[dp_id] for dp_id in wanted]

    def evaluate(self, zone_id: str, standard_id: str, datapoint_ids: Sequence[str],
                 recommendations: str = '') -> EvaluationVersion:
        """
        Scores the selected datapoints and stores the result as a new version.

        The first evaluation of a (project, zone, standard) creates the output
        and version 1; later ones append the next version number.
        """
        zone, standard, datapoints = self._resolve(zone_id, standard_id, datapoint_ids)
        analyst = self.identity_provider.current_user()

        output = self.store.find_output(zone.project_id, zone.id, standard.id)
        if output is None:
            output = AnalysisOutput(
                id=uuid.uuid4().hex,
                project_id=zone.project_id,
                zone_id=zone.id,
                standard_id=standard.id,
                analyst_id=analyst.id,
            )
            try:
                return self.store.create_first_version(
                    output, datapoints, standard, recommendations, analyst.id
                )
            except VersionConflictError:
                # Another analyst created the output first: append to theirs
                output = self.store.find_output(zone.project_id, zone.id, standard.id)
                if output is None:
                    raise
                logger.info(f"Output for zone {zone.id} created concurrently, appending to {output.id}")

        return self.store.create_next_version(
            output.id, datapoints, standard, recommendations, analyst.id
        )

    def get_latest_evaluation(self, output_id: str) -> EvaluationVersion:
        return self.store.get_version(output_id)

    def get_version(self, output_id: str, version_number: Optional[int] = None) -> EvaluationVersion:
        return self.store.get_version(output_id, version_number)

    def version_history(self, output_id: str) -> pd.DataFrame:
        return self.store.version_history(output_id)

    def list_outputs(self, project_id: Optional[str] = None) -> pd.DataFrame:
        if project_id is not None:
            project_id = _require_id(project_id, 'project id')
        return self.store.list_outputs(project_id)

    def build_context(self, version: EvaluationVersion) -> ReportContext:
        """
        Collects project, zone, standard and analyst for a stored version.

        A standard that has left the catalog is replaced by an empty one so
        the version still renders with raw parameter codes.
        """
        output = self.store.get_output(version.output_id)

        zone = self.project_source.fetch_zone(output.zone_id)
        if zone is None:
            zone = Zone(id=output.zone_id, project_id=output.project_id, name=output.zone_id)
        project = self.project_source.fetch_project(output.project_id)
        if project is None:
            project = Project(id=output.project_id, name=output.project_id)

        try:
            standard = self.standard_source.fetch_standard(output.standard_id)
        except NotFoundError:
            get_output_logger(__name__, output.id).warning(
                f"Standard '{output.standard_id}' is no longer in the catalog"
            )
            standard = Standard(id=output.standard_id, name=output.standard_id)

        current = self.identity_provider.current_user()
        if output.analyst_id and current.id != output.analyst_id:
            analyst = Analyst(id=output.analyst_id, display_name=output.analyst_id)
        else:
            analyst = current

        return ReportContext(project=project, zone=zone, standard=standard, analyst=analyst)

    def render_report(self, version: EvaluationVersion,
                      context: Optional[ReportContext] = None) -> ReportDocument:
        """Report for a stored version, rendered only from its frozen content."""
        if context is None:
            context = self.build_context(version)
        return assemble(version, context.project, context.zone, context.standard, context.analyst)

    def preview(self, zone_id: str, standard_id: str, datapoint_ids: Sequence[str],
                recommendations: str = '') -> ReportDocument:
        """
        Live recompute from the current datapoint values.

        Nothing is stored; the document is flagged is_preview and carries
        version number 0.
        """
        zone, standard, datapoints = self._resolve(zone_id, standard_id, datapoint_ids)
        evaluation = aggregate_zone(datapoints, standard, self.store.loss_rate_settings)

        project = self.project_source.fetch_project(zone.project_id)
        if project is None:
            project = Project(id=zone.project_id, name=zone.project_id)
        analyst = self.identity_provider.current_user()

        version = EvaluationVersion(
            output_id='',
            version_number=0,
            content=evaluation.to_content(),
            total_rating=evaluation.total_rating,
            classification=evaluation.classification.risk_class,
            stress=evaluation.classification.stress,
            unrated=tuple(evaluation.unrated),
            recommendations=recommendations,
            created_by=analyst.id,
        )
        return assemble(version, project, zone, standard, analyst, is_preview=True)
