# soilrisk/services/repository.py
import logging
import pandas as pd
from typing import Any, Dict, List, Optional
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ..analysis.errors import VersionConflictError
from ..analysis.models import AnalysisOutput

logger = logging.getLogger(__name__)


class EvaluationRepository:
    """
    Handles all database interactions for the evaluation engine.
    This is the *only* place SQL queries should exist.

    analysis_outputs and analysis_versions are append-only: no query here
    updates or deletes a version row.
    """
    def __init__(self, engine: Engine):
        self.engine = engine
        self.db_type = engine.dialect.name
        logger.debug(f"EvaluationRepository initialized for {self.db_type}")

    def _get_query(self, query_name: str) -> str:
        """Centralized query storage."""

        # 'values' is a reserved word, quoted differently per dialect
        values_col = '`values`' if self.db_type == 'mysql' else '"values"'
        content_type = 'MEDIUMTEXT' if self.db_type == 'mysql' else 'TEXT'

        queries = {
            'create_projects': """
                CREATE TABLE IF NOT EXISTS projects (
                    id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    client_ref VARCHAR(255),
                    type_project VARCHAR(64)
                )
            """,
            'create_zones': """
                CREATE TABLE IF NOT EXISTS zones (
                    id VARCHAR(64) PRIMARY KEY,
                    project_id VARCHAR(64) NOT NULL,
                    name VARCHAR(255) NOT NULL,
                    latitude DOUBLE PRECISION,
                    longitude DOUBLE PRECISION
                )
            """,
            'create_datapoints': f"""
                CREATE TABLE IF NOT EXISTS datapoints (
                    id VARCHAR(64) PRIMARY KEY,
                    zone_id VARCHAR(64) NOT NULL,
                    {values_col} {content_type} NOT NULL,
                    measured_at VARCHAR(32)
                )
            """,
            'create_outputs': """
                CREATE TABLE IF NOT EXISTS analysis_outputs (
                    id VARCHAR(64) PRIMARY KEY,
                    project_id VARCHAR(64) NOT NULL,
                    zone_id VARCHAR(64) NOT NULL,
                    norm_id VARCHAR(64) NOT NULL,
                    analyst_id VARCHAR(64),
                    created_at VARCHAR(32) NOT NULL,
                    UNIQUE (project_id, zone_id, norm_id)
                )
            """,
            'create_versions': f"""
                CREATE TABLE IF NOT EXISTS analysis_versions (
                    output_id VARCHAR(64) NOT NULL,
                    version_number INTEGER NOT NULL,
                    content {content_type} NOT NULL,
                    total_rating INTEGER NOT NULL,
                    classification VARCHAR(16) NOT NULL,
                    stress VARCHAR(32) NOT NULL,
                    unrated {content_type} NOT NULL,
                    recommendations TEXT,
                    created_by VARCHAR(64),
                    created_at VARCHAR(32) NOT NULL,
                    PRIMARY KEY (output_id, version_number)
                )
            """,
            'find_output': """
                SELECT id, project_id, zone_id, norm_id, analyst_id, created_at
                FROM analysis_outputs
                WHERE project_id = :project_id AND zone_id = :zone_id AND norm_id = :norm_id
            """,
            'get_output': """
                SELECT id, project_id, zone_id, norm_id, analyst_id, created_at
                FROM analysis_outputs WHERE id = :id
            """,
            'insert_output': """
                INSERT INTO analysis_outputs (id, project_id, zone_id, norm_id, analyst_id, created_at)
                VALUES (:id, :project_id, :zone_id, :norm_id, :analyst_id, :created_at)
            """,
            'insert_version': """
                INSERT INTO analysis_versions (
                    output_id, version_number, content, total_rating, classification,
                    stress, unrated, recommendations, created_by, created_at
                ) VALUES (
                    :output_id, :version_number, :content, :total_rating, :classification,
                    :stress, :unrated, :recommendations, :created_by, :created_at
                )
            """,
            'get_max_version': """
                SELECT MAX(version_number) FROM analysis_versions WHERE output_id = :output_id
            """,
            'get_version': """
                SELECT * FROM analysis_versions
                WHERE output_id = :output_id AND version_number = :version_number
            """,
            'get_latest_version': """
                SELECT * FROM analysis_versions
                WHERE output_id = :output_id
                ORDER BY version_number DESC
                LIMIT 1
            """,
            'version_history': """
                SELECT version_number, total_rating, classification, stress, created_by, created_at
                FROM analysis_versions
                WHERE output_id = :output_id
                ORDER BY version_number
            """,
            'list_outputs': """
                SELECT o.id AS output_id, o.project_id, o.zone_id, o.norm_id AS standard_id,
                       o.analyst_id, o.created_at,
                       v.version_number AS latest_version, v.total_rating, v.classification,
                       v.stress, v.created_at AS updated_at
                FROM analysis_outputs o
                LEFT JOIN analysis_versions v
                    ON v.output_id = o.id
                    AND v.version_number = (
                        SELECT MAX(version_number) FROM analysis_versions WHERE output_id = o.id
                    )
                WHERE :project_id IS NULL OR o.project_id = :project_id
                ORDER BY o.created_at DESC, o.id
            """,
            'get_project': """
                SELECT id, name, client_ref, type_project FROM projects WHERE id = :id
            """,
            'get_zone': """
                SELECT id, project_id, name, latitude, longitude FROM zones WHERE id = :id
            """,
            'get_datapoints_for_zone': f"""
                SELECT id, {values_col} AS values_json, measured_at
                FROM datapoints WHERE zone_id = :zone_id
                ORDER BY id
            """,
            'insert_project': """
                INSERT INTO projects (id, name, client_ref, type_project)
                VALUES (:id, :name, :client_ref, :type_project)
            """,
            'insert_zone': """
                INSERT INTO zones (id, project_id, name, latitude, longitude)
                VALUES (:id, :project_id, :name, :latitude, :longitude)
            """,
            'insert_datapoint': f"""
                INSERT INTO datapoints (id, zone_id, {values_col}, measured_at)
                VALUES (:id, :zone_id, :values_json, :measured_at)
            """,
            'update_datapoint_values': f"""
                UPDATE datapoints SET {values_col} = :values_json WHERE id = :id
            """,
        }

        try:
            return queries[query_name]
        except KeyError:
            logger.error(f"Query '{query_name}' not found.")
            raise

    # --- Schema ---

    def create_schema(self, include_source_tables: bool = True) -> None:
        """Creates the evaluation tables (and, optionally, project/zone/datapoint tables)."""
        names = ['create_outputs', 'create_versions']
        if include_source_tables:
            names = ['create_projects', 'create_zones', 'create_datapoints'] + names
        with self.engine.begin() as conn:
            for name in names:
                conn.execute(text(self._get_query(name)))
        logger.info(f"Schema ready ({', '.join(names)})")

    # --- Outputs ---

    @staticmethod
    def _output_from_row(row) -> AnalysisOutput:
        return AnalysisOutput(
            id=row['id'],
            project_id=row['project_id'],
            zone_id=row['zone_id'],
            standard_id=row['norm_id'],
            analyst_id=row['analyst_id'],
            created_at=row['created_at'],
        )

    def find_output(self, project_id: str, zone_id: str, standard_id: str) -> Optional[AnalysisOutput]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(self._get_query('find_output')),
                {'project_id': project_id, 'zone_id': zone_id, 'norm_id': standard_id}
            ).mappings().first()
        return self._output_from_row(row) if row else None

    def get_output(self, output_id: str) -> Optional[AnalysisOutput]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(self._get_query('get_output')), {'id': output_id}
            ).mappings().first()
        return self._output_from_row(row) if row else None

    def insert_output_with_first_version(self, output: AnalysisOutput, version_row: Dict[str, Any]) -> None:
        """Inserts a new output and its version 1 in one transaction."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text(self._get_query('insert_output')), {
                    'id': output.id,
                    'project_id': output.project_id,
                    'zone_id': output.zone_id,
                    'norm_id': output.standard_id,
                    'analyst_id': output.analyst_id,
                    'created_at': output.created_at,
                })
                conn.execute(text(self._get_query('insert_version')), version_row)
        except IntegrityError as e:
            logger.warning(f"Output insert conflict for {output.id}: {e.orig}")
            raise VersionConflictError(
                output.id, 1,
                f"An output for project {output.project_id}, zone {output.zone_id} and "
                f"standard {output.standard_id} was created concurrently"
            ) from e

    # --- Versions ---

    def get_max_version_number(self, output_id: str) -> int:
        """Highest version number of an output, 0 when it has none."""
        with self.engine.connect() as conn:
            value = conn.execute(
                text(self._get_query('get_max_version')), {'output_id': output_id}
            ).scalar()
        return int(value) if value is not None else 0

    def insert_version(self, version_row: Dict[str, Any]) -> None:
        """Inserts one version row. The (output_id, version_number) key rejects duplicates."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text(self._get_query('insert_version')), version_row)
        except IntegrityError as e:
            raise VersionConflictError(version_row['output_id'], version_row['version_number']) from e

    def get_version_row(self, output_id: str, version_number: int) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(self._get_query('get_version')),
                {'output_id': output_id, 'version_number': version_number}
            ).mappings().first()
        return dict(row) if row else None

    def get_latest_version_row(self, output_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(self._get_query('get_latest_version')), {'output_id': output_id}
            ).mappings().first()
        return dict(row) if row else None

    def read_version_history(self, output_id: str) -> pd.DataFrame:
        with self.engine.connect() as conn:
            return pd.read_sql(
                text(self._get_query('version_history')), con=conn,
                params={'output_id': output_id}
            )

    def list_outputs(self, project_id: Optional[str] = None) -> pd.DataFrame:
        """Every output with its latest version, newest output first."""
        with self.engine.connect() as conn:
            return pd.read_sql(
                text(self._get_query('list_outputs')), con=conn,
                params={'project_id': project_id}
            )

    # --- Project data (owned by the surrounding application) ---

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = conn.execute(text(self._get_query('get_project')), {'id': project_id}).mappings().first()
        return dict(row) if row else None

    def get_zone(self, zone_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = conn.execute(text(self._get_query('get_zone')), {'id': zone_id}).mappings().first()
        return dict(row) if row else None

    def get_datapoints_for_zone(self, zone_id: str) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(self._get_query('get_datapoints_for_zone')), {'zone_id': zone_id}
            ).mappings().all()
        return [dict(r) for r in rows]

    def insert_project(self, project_id: str, name: str, client_ref: str = None, project_type: str = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(self._get_query('insert_project')), {
                'id': project_id, 'name': name, 'client_ref': client_ref, 'type_project': project_type
            })

    def insert_zone(self, zone_id: str, project_id: str, name: str,
                    latitude: float = None, longitude: float = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(self._get_query('insert_zone')), {
                'id': zone_id, 'project_id': project_id, 'name': name,
                'latitude': latitude, 'longitude': longitude
            })

    def insert_datapoint(self, datapoint_id: str, zone_id: str, values_json: str, measured_at: str = None) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(self._get_query('insert_datapoint')), {
                'id': datapoint_id, 'zone_id': zone_id,
                'values_json': values_json, 'measured_at': measured_at
            })

    def update_datapoint_values(self, datapoint_id: str, values_json: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(self._get_query('update_datapoint_values')), {
                'id': datapoint_id, 'values_json': values_json
            })
