# tests/conftest.py
import json
import logging

import pytest

from soilrisk.analysis.catalog import ParameterCatalog, reset_catalog_cache
from soilrisk.analysis.models import Analyst
from soilrisk.services.db_engine import create_db_engine
from soilrisk.services.logging_config import OutputContextFilter
from soilrisk.services.repository import EvaluationRepository
from soilrisk.services.sources import (
    CatalogStandardSource, RepositoryProjectSource, StaticIdentityProvider
)
from soilrisk.services.version_store import EvaluationVersionStore
from soilrisk.workflows import EvaluationService

# Three DIN 50929-3 datapoints of zone ZN1 and one of another zone
DIN_DATAPOINTS = {
    'DP1': ('ZN1', {'Z1': 5, 'Z2': 15, 'Z4': 6.5, 'Z10': 'constant'}),      # 4 - 4 + 0 - 1 = -1
    'DP2': ('ZN1', {'Z1': 'impurities', 'Z2': 600, 'Z3': 10}),             # -12 + 4 + 0 = -8
    'DP3': ('ZN1', {'Z2': '250', 'Z4': 9.5, 'Z99': 42}),                   # 2 - 2 = 0, Z99 unrated
    'DP9': ('ZN2', {'Z2': 100}),
}


@pytest.fixture
def catalog():
    return ParameterCatalog()


@pytest.fixture
def din_standard(catalog):
    return catalog.get_standard('din50929-3')


@pytest.fixture
def as_nzs_standard(catalog):
    return catalog.get_standard('as-nzs-2041.1')


@pytest.fixture
def analyst():
    return Analyst(id='analyst-01', display_name='Jane Doe', email='jane.doe@example.com')


@pytest.fixture
def repository(tmp_path):
    """An empty schema in a SQLite file under tmp_path."""
    engine = create_db_engine('sqlite', {'database': str(tmp_path / 'soilrisk.db')})
    repo = EvaluationRepository(engine)
    repo.create_schema()
    yield repo
    engine.dispose()


@pytest.fixture
def seeded_repository(repository):
    """Project P1 with zones ZN1 (DP1-DP3) and ZN2 (DP9)."""
    repository.insert_project('P1', 'Pipeline North', client_ref='C-100', project_type='pipeline')
    repository.insert_zone('ZN1', 'P1', 'Crossing A', latitude=52.1, longitude=13.4)
    repository.insert_zone('ZN2', 'P1', 'Crossing B')
    for dp_id, (zone_id, values) in DIN_DATAPOINTS.items():
        repository.insert_datapoint(dp_id, zone_id, json.dumps(values), measured_at='2024-05-02T10:00:00')
    return repository


@pytest.fixture
def store(seeded_repository):
    return EvaluationVersionStore(seeded_repository)


@pytest.fixture
def service(store, catalog, analyst):
    return EvaluationService(
        store,
        project_source=RepositoryProjectSource(store.repository),
        standard_source=CatalogStandardSource(catalog),
        identity_provider=StaticIdentityProvider(analyst),
    )


@pytest.fixture
def clean_catalog_cache():
    reset_catalog_cache()
    yield
    reset_catalog_cache()


@pytest.fixture
def restore_root_logging():
    """Removes the handlers installed by setup_main_logging and restores the root level."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if any(isinstance(f, OutputContextFilter) for f in handler.filters):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """A config.ini under tmp_path pointing at a SQLite file, picked up through SOILRISK_CONFIG_DIR."""
    directory = tmp_path / 'config'
    directory.mkdir()
    (directory / 'config.ini').write_text(
        "[basic]\n"
        "use_database = sqlite\n"
        "standards_file =\n\n"
        "[sqlite]\n"
        f"database = {tmp_path / 'cli.db'}\n\n"
        "[analyst]\n"
        "id = analyst-01\n"
        "display_name = Jane Doe\n\n"
        "[loss_rate]\n"
        "default_coating_thickness = 100\n"
    )
    monkeypatch.setenv('SOILRISK_CONFIG_DIR', str(directory))
    return directory
