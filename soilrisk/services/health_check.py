import json
import logging
import dataclasses
from configparser import ConfigParser
from typing import Dict, Any

from sqlalchemy.exc import SQLAlchemyError

from .config_loader import get_config_path, load_config, load_loss_rate_settings, load_evaluation_settings
from .db_engine import create_db_engine, is_db_connected
from ..analysis.catalog import ParameterCatalog, get_catalog
from ..analysis.errors import CatalogError
from ..analysis.models import DEFAULT_LOSS_RATE_SETTINGS

logger = logging.getLogger(__name__)


def _censor_config(config: Dict[str, Any]) -> str:
    """
    Takes a config dictionary, censors 'password', and returns a formatted JSON string.
    """
    censored_config = {}
    for key, value in config.items():
        if "password" in str(key).lower() and value:
            censored_config[key] = f"***{str(value)[-2:]}"
        else:
            censored_config[key] = value

    return json.dumps(censored_config, indent=2)


def _check_database(basic_config: Dict[str, Any]) -> bool:
    db_type = str(basic_config.get('use_database', 'sqlite')).lower()
    if db_type in ('false', 'no', '0'):
        logger.info("ℹ️  Database disabled in [basic], skipping connection check")
        return True

    logger.info("--- Checking Database Connection ---")
    try:
        db_creds = load_config(section=db_type)
        logger.info(f"[{db_type}] Config: {_censor_config(db_creds)}")
        engine = create_db_engine(db_type, db_creds)
        if not is_db_connected(engine):
            logger.error("❌ Database connection: FAILED")
            return False
        logger.info("✅ Database connection: OK")
        return True
    except (KeyError, ValueError, SQLAlchemyError, ImportError) as e:
        logger.error("❌ Database connection: FAILED")
        logger.error(f"   Error: {e}")
        return False


def _report_catalog(catalog: ParameterCatalog) -> bool:
    all_ok = True
    for standard_id in catalog.standard_ids:
        standard = catalog.get_standard(standard_id)
        logger.info(f"   • {standard_id}: {standard.name} ({len(standard.parameters)} parameters)")
        for code, reason in standard.rejected.items():
            logger.error(f"❌ {standard_id}/{code} disabled: {reason}")
            all_ok = False
    return all_ok


def _report_loss_rate_settings() -> None:
    settings = load_loss_rate_settings()

    parser = ConfigParser()
    parser.read(get_config_path('config.ini'))
    custom_set = set(parser.options('loss_rate')) if parser.has_section('loss_rate') else set()

    for f in dataclasses.fields(settings):
        current_val = getattr(settings, f.name)
        default_val = getattr(DEFAULT_LOSS_RATE_SETTINGS, f.name)
        if f.name in custom_set and current_val != default_val:
            logger.info(f"   • {f.name} = {current_val} [CUSTOM] (default: {default_val})")
        else:
            logger.info(f"   • {f.name} = {current_val}")

    if not custom_set:
        logger.info("   To customize, add a [loss_rate] section to config.ini")


def check_configurations() -> bool:
    """
    Loads all configs, prints them, and checks the database and the standards catalog.
    Returns True if all checks passed, False otherwise.
    """
    all_ok = True

    # --- 1. Load [basic] config ---
    try:
        logger.info("--- [basic] Configuration ---")
        basic_config = load_config(section='basic')
        logger.info(_censor_config(basic_config))
    except (FileNotFoundError, KeyError) as e:
        logger.error(f"Failed to load [basic] config: {e}")
        return False

    # --- 2. Database ---
    if not _check_database(basic_config):
        all_ok = False

    # --- 3. Analyst identity ---
    try:
        analyst = load_config(section='analyst')
        logger.info(f"✅ Analyst: {analyst.get('display_name') or analyst.get('id')}")
    except KeyError:
        logger.error("❌ No [analyst] section: evaluations cannot be attributed")
        all_ok = False

    # --- 4. Standards catalog ---
    logger.info("--- Standards Catalog ---")
    try:
        catalog = get_catalog(basic_config.get('standards_file') or None)
        if not _report_catalog(catalog):
            all_ok = False
    except (FileNotFoundError, CatalogError) as e:
        logger.error(f"❌ Standards catalog: FAILED")
        logger.error(f"   Error: {e}")
        all_ok = False

    # --- 5. Settings ---
    logger.info("--- Evaluation Settings ---")
    evaluation_settings = load_evaluation_settings()
    logger.info(f"   • max_allocation_retries = {evaluation_settings.max_allocation_retries}")

    logger.info("--- Zinc Loss-Rate Settings ---")
    _report_loss_rate_settings()

    return all_ok
