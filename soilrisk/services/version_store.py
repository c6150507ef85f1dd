# soilrisk/services/version_store.py
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from ..analysis.aggregator import aggregate_zone
from ..analysis.errors import NotFoundError, ValidationError, VersionConflictError
from ..analysis.models import (
    AnalysisOutput, Datapoint, EvaluationVersion, Standard, UnratedValue, ZoneEvaluation,
    EvaluationSettings, DEFAULT_EVALUATION_SETTINGS,
    LossRateSettings, DEFAULT_LOSS_RATE_SETTINGS
)
from .logging_config import get_output_logger
from .repository import EvaluationRepository

logger = logging.getLogger(__name__)


def _to_json(data: Any) -> str:
    """Canonical JSON: identical content always gives identical text."""
    return json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(',', ':'), default=str)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EvaluationVersionStore:
    """
    Append-only store of evaluation versions.

    Every create call computes the evaluation, then performs exactly one
    transaction. Version numbers are allocated as max + 1 and protected by
    the (output_id, version_number) key; a collision with a concurrent
    writer is retried with a fresh max, up to max_allocation_retries.
    """
    def __init__(
        self,
        repository: EvaluationRepository,
        settings: EvaluationSettings = DEFAULT_EVALUATION_SETTINGS,
        loss_rate_settings: LossRateSettings = DEFAULT_LOSS_RATE_SETTINGS
    ):
        self.repository = repository
        self.settings = settings
        self.loss_rate_settings = loss_rate_settings

    # --- Helpers ---

    def _evaluate(self, datapoints: Sequence[Datapoint], standard: Standard) -> ZoneEvaluation:
        if standard is None:
            raise ValidationError("A standard is required to create an evaluation version")
        if not datapoints:
            raise ValidationError("At least one datapoint is required to create an evaluation version")
        return aggregate_zone(datapoints, standard, self.loss_rate_settings)

    @staticmethod
    def _build_row(output_id: str, version_number: int, evaluation: ZoneEvaluation,
                   recommendations: str, created_by: Optional[str]) -> Dict[str, Any]:
        return {
            'output_id': output_id,
            'version_number': version_number,
            'content': _to_json(evaluation.to_content()),
            'total_rating': int(evaluation.total_rating),
            'classification': evaluation.classification.risk_class,
            'stress': evaluation.classification.stress,
            'unrated': _to_json([
                {'datapoint_id': u.datapoint_id, 'code': u.code,
                 'raw_value': u.raw_value, 'reason': u.reason}
                for u in evaluation.unrated
            ]),
            'recommendations': recommendations or '',
            'created_by': created_by,
            'created_at': _now(),
        }

    @staticmethod
    def _version_from_row(row: Dict[str, Any]) -> EvaluationVersion:
        unrated = tuple(
            UnratedValue(u['code'], u['raw_value'], u['reason'], u.get('datapoint_id'))
            for u in json.loads(row['unrated'] or '[]')
        )
        return EvaluationVersion(
            output_id=row['output_id'],
            version_number=int(row['version_number']),
            content=json.loads(row['content']),
            total_rating=int(row['total_rating']),
            classification=row['classification'],
            stress=row['stress'],
            unrated=unrated,
            recommendations=row['recommendations'] or '',
            created_by=row['created_by'],
            created_at=row['created_at'],
        )

    # --- Operations ---

    def find_output(self, project_id: str, zone_id: str, standard_id: str) -> Optional[AnalysisOutput]:
        return self.repository.find_output(project_id, zone_id, standard_id)

    def get_output(self, output_id: str) -> AnalysisOutput:
        output = self.repository.get_output(output_id) if output_id else None
        if output is None:
            raise NotFoundError(f"Analysis output '{output_id}' not found")
        return output

    def create_first_version(
        self,
        output: AnalysisOutput,
        datapoints: Sequence[Datapoint],
        standard: Standard,
        recommendations: str = '',
        created_by: Optional[str] = None
    ) -> EvaluationVersion:
        """
        Creates an output together with its version 1.

        Raises:
            ValidationError: no datapoints, or missing/mismatched output or standard
            VersionConflictError: the output was created concurrently
        """
        if output is None or not output.id:
            raise ValidationError("An analysis output is required to create the first version")
        evaluation = self._evaluate(datapoints, standard)
        if output.standard_id != standard.id:
            raise ValidationError(
                f"Output {output.id} belongs to standard '{output.standard_id}', not '{standard.id}'"
            )
        if not output.created_at:
            output = AnalysisOutput(
                id=output.id, project_id=output.project_id, zone_id=output.zone_id,
                standard_id=output.standard_id, analyst_id=output.analyst_id, created_at=_now()
            )

        row = self._build_row(output.id, 1, evaluation, recommendations, created_by)
        self.repository.insert_output_with_first_version(output, row)

        get_output_logger(__name__, output.id).info(
            f"Version 1 created: total={row['total_rating']} class={row['classification']} "
            f"datapoints={len(evaluation.datapoints)} unrated={len(evaluation.unrated)}"
        )
        return self._version_from_row(row)

    def create_next_version(
        self,
        output_id: str,
        datapoints: Sequence[Datapoint],
        standard: Standard,
        recommendations: str = '',
        created_by: Optional[str] = None
    ) -> EvaluationVersion:
        """
        Appends version max + 1 to an existing output.

        Raises:
            ValidationError: no datapoints, unknown output, or mismatched standard
            VersionConflictError: every allocation attempt collided
        """
        output = self.repository.get_output(output_id) if output_id else None
        if output is None:
            raise ValidationError(f"Unknown analysis output '{output_id}'")
        evaluation = self._evaluate(datapoints, standard)
        if output.standard_id != standard.id:
            raise ValidationError(
                f"Output {output_id} belongs to standard '{output.standard_id}', not '{standard.id}'"
            )

        out_logger = get_output_logger(__name__, output_id)
        attempts = self.settings.max_allocation_retries
        version_number = 0
        for attempt in range(1, attempts + 1):
            version_number = self.repository.get_max_version_number(output_id) + 1
            row = self._build_row(output_id, version_number, evaluation, recommendations, created_by)
            try:
                self.repository.insert_version(row)
            except VersionConflictError:
                out_logger.warning(
                    f"Version {version_number} was taken concurrently (attempt {attempt}/{attempts})"
                )
                continue

            out_logger.info(
                f"Version {version_number} created: total={row['total_rating']} "
                f"class={row['classification']} unrated={len(evaluation.unrated)}"
            )
            return self._version_from_row(row)

        raise VersionConflictError(
            output_id, version_number,
            f"Could not allocate a version number for output {output_id} after "
            f"{attempts} attempts, please try again"
        )

    def get_version(self, output_id: str, version_number: Optional[int] = None) -> EvaluationVersion:
        """
        Returns the given version, or the latest (highest number) when omitted.

        Raises:
            NotFoundError: the output or the version does not exist
        """
        if version_number is None:
            row = self.repository.get_latest_version_row(output_id)
        else:
            row = self.repository.get_version_row(output_id, int(version_number))

        if row is None:
            if self.repository.get_output(output_id) is None:
                raise NotFoundError(f"Analysis output '{output_id}' not found")
            which = 'any version' if version_number is None else f"version {version_number}"
            raise NotFoundError(f"Analysis output '{output_id}' has no {which}")
        return self._version_from_row(row)

    def version_history(self, output_id: str) -> pd.DataFrame:
        """One row per version: number, total rating, class, stress, author, time."""
        self.get_output(output_id)
        return self.repository.read_version_history(output_id)

    def list_outputs(self, project_id: Optional[str] = None) -> pd.DataFrame:
        """
        One row per analysis output, newest first, with the number, total rating,
        class, stress and time of its latest version.
        """
        outputs = self.repository.list_outputs(project_id)
        logger.debug(f"Listed {len(outputs)} analysis output(s)")
        return outputs

    def list_version_numbers(self, output_id: str) -> List[int]:
        return [int(n) for n in self.version_history(output_id)['version_number']]
