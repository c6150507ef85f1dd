# soilrisk/services/sources.py
"""
Data sources consumed by the evaluation workflow.

Projects, zones and datapoints are owned by the surrounding application;
these classes only read them. Standards come from the parameter catalog
and the analyst identity from the [analyst] config section.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from ..analysis.catalog import ParameterCatalog
from ..analysis.models import Analyst, Datapoint, Project, Standard, Zone
from .config_loader import load_config
from .repository import EvaluationRepository

logger = logging.getLogger(__name__)


def datapoint_from_row(row: Dict[str, Any]) -> Datapoint:
    raw = row.get('values_json')
    try:
        values = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.error(f"Datapoint {row['id']} has malformed values, treating as empty")
        values = {}
    if not isinstance(values, dict):
        logger.error(f"Datapoint {row['id']} values are not a mapping, treating as empty")
        values = {}
    return Datapoint(id=str(row['id']), values=values, timestamp=row.get('measured_at'))


class RepositoryProjectSource:
    """Reads projects, zones and datapoints from the application tables."""
    def __init__(self, repository: EvaluationRepository):
        self.repository = repository

    def fetch_project(self, project_id: str) -> Optional[Project]:
        row = self.repository.get_project(project_id)
        if row is None:
            return None
        return Project(id=row['id'], name=row['name'],
                       client_ref=row['client_ref'], project_type=row['type_project'])

    def fetch_zone(self, zone_id: str) -> Optional[Zone]:
        row = self.repository.get_zone(zone_id)
        if row is None:
            return None
        return Zone(id=row['id'], project_id=row['project_id'], name=row['name'],
                    latitude=row['latitude'], longitude=row['longitude'])

    def fetch_datapoints(self, zone_id: str) -> List[Datapoint]:
        return [datapoint_from_row(r) for r in self.repository.get_datapoints_for_zone(zone_id)]


class CatalogStandardSource:
    def __init__(self, catalog: ParameterCatalog):
        self.catalog = catalog

    def fetch_standard(self, standard_id: str) -> Standard:
        return self.catalog.get_standard(standard_id)


class StaticIdentityProvider:
    def __init__(self, analyst: Analyst):
        self.analyst = analyst

    def current_user(self) -> Analyst:
        return self.analyst


class ConfigIdentityProvider:
    """Analyst identity from the [analyst] section (id, display_name, email)."""
    def __init__(self, filename: str = 'config.ini'):
        self.filename = filename

    def current_user(self) -> Analyst:
        section = load_config(self.filename, section='analyst')
        return Analyst(
            id=section['id'],
            display_name=section.get('display_name') or section['id'],
            email=section.get('email'),
        )
