import os
import logging
from typing import Dict, Any
from urllib.parse import quote_plus
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {'postgresql': 5432, 'mysql': 3306}
DRIVERS = {'postgresql': 'postgresql+psycopg2', 'mysql': 'mysql+mysqlconnector'}


def build_database_url(db_type: str, db_creds: Dict[str, Any]) -> str:
    """
    Builds an SQLAlchemy URL from a config section.

    Args:
        db_type: 'sqlite', 'postgresql' or 'mysql'
        db_creds: Section values (host, port, user, password, database)
    """
    db_type = db_type.lower()
    if db_type == 'sqlite':
        database = db_creds.get('database') or ':memory:'
        if database == ':memory:':
            return "sqlite://"
        return f"sqlite:///{os.path.abspath(database)}"

    if db_type not in DRIVERS:
        raise ValueError("Unsupported database type. Choose 'sqlite', 'mysql' or 'postgresql'.")

    user = quote_plus(str(db_creds['user']))
    password = quote_plus(str(db_creds.get('password') or ''))
    host = db_creds.get('host', '127.0.0.1')
    port = db_creds.get('port') or DEFAULT_PORTS[db_type]
    database = db_creds['database']
    return f"{DRIVERS[db_type]}://{user}:{password}@{host}:{port}/{database}"


def create_db_engine(db_type: str, db_creds: Dict[str, Any]) -> Engine:
    """Creates a pooled engine for the configured database."""
    url = build_database_url(db_type, db_creds)
    kwargs = {}
    if db_type.lower() != 'sqlite':
        kwargs['pool_size'] = int(db_creds.get('pool_size') or 5)
        kwargs['pool_pre_ping'] = True
    engine = create_engine(url, **kwargs)
    logger.debug(f"Database engine created for {db_type}")
    return engine


def is_db_connected(engine: Engine) -> bool:
    """Checks if the database is reachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchall()
        logger.info(f"DB Connection Check: OK, client: {engine.dialect.name}")
        return True
    except SQLAlchemyError as e:
        logger.error(f"!! DB Connection Check Error ({engine.dialect.name}): {e}")
        return False
