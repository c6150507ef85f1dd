#!/usr/bin/env python3
import sys
import json
import logging
import argparse
import signal
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from soilrisk import __version__
from soilrisk.analysis.catalog import get_catalog
from soilrisk.analysis.errors import CatalogError, NotFoundError, ValidationError, VersionConflictError
from soilrisk.services.logging_config import setup_main_logging
from soilrisk.services.config_loader import load_config, load_evaluation_settings, load_loss_rate_settings

logger = logging.getLogger(__name__)


def _handle_termination_signal(signum, frame):
    """Handle termination signals (SIGTERM, SIGINT) and log before exiting."""
    signal_names = {
        signal.SIGTERM: "SIGTERM",
        signal.SIGINT: "SIGINT (Ctrl+C)",
    }
    if hasattr(signal, 'SIGHUP'):
        signal_names[signal.SIGHUP] = "SIGHUP"
    signal_name = signal_names.get(signum, f"signal {signum}")

    logger.warning(f"{'='*70}")
    logger.warning(f"⚠️  Process received {signal_name} - Terminating")
    logger.warning(f"{'='*70}")

    logging.shutdown()
    sys.exit(128 + signum)


def _setup_arguments():
    """Configures command-line arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="soilrisk: soil corrosion-risk evaluation with versioned reports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the tables in the configured database
  ./soilrisk_cli.py --init-db -v

  # List the standards known to the catalog
  ./soilrisk_cli.py --list-standards

  # Evaluate three datapoints of a zone against DIN 50929-3
  ./soilrisk_cli.py --evaluate Z-01 --standard din50929-3 --datapoints DP1 DP2 DP3 -v

  # Same selection, recomputed live without storing a version
  ./soilrisk_cli.py --evaluate Z-01 --standard din50929-3 --datapoints DP1 DP2 DP3 --preview

  # Print the latest report of an output, or a given version
  ./soilrisk_cli.py --show 3f2a...
  ./soilrisk_cli.py --show 3f2a... --version-number 2

  # List all versions of an output
  ./soilrisk_cli.py --history 3f2a...

  # List all outputs, or those of one project
  ./soilrisk_cli.py --list-outputs
  ./soilrisk_cli.py --list-outputs P-100
"""
    )

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument(
        "--init-db",
        action="store_true",
        help="Create the evaluation tables (and project/zone/datapoint tables) if missing."
    )
    action_group.add_argument(
        "--list-standards",
        action="store_true",
        help="List the catalog standards and any disabled parameters."
    )
    action_group.add_argument(
        "-e", "--evaluate",
        metavar="ZONE",
        type=str,
        default=None,
        help="Evaluate datapoints of this zone and store a new version."
    )
    action_group.add_argument(
        "--show",
        metavar="OUTPUT",
        type=str,
        default=None,
        help="Print the report of an analysis output as JSON."
    )
    action_group.add_argument(
        "--history",
        metavar="OUTPUT",
        type=str,
        default=None,
        help="List the versions of an analysis output."
    )
    action_group.add_argument(
        "--list-outputs",
        metavar="PROJECT",
        nargs='?',
        const='',
        default=None,
        help="List analysis outputs with their latest version, newest first (optionally of one project)."
    )
    action_group.add_argument(
        "--check-config",
        action="store_true",
        help="Check all configuration, test connection, and exit."
    )

    # --- Evaluation options ---
    parser.add_argument(
        "--standard",
        metavar="STD",
        type=str,
        default=None,
        help="Standard id used with --evaluate (see --list-standards)."
    )
    parser.add_argument(
        "-p", "--datapoints",
        metavar="ID",
        nargs='+',
        type=str,
        default=None,
        help="Datapoint ids used with --evaluate."
    )
    parser.add_argument(
        "--recommendations",
        type=str,
        default='',
        help="Free-text recommendations stored with the version."
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="With --evaluate: print a live recompute instead of storing a version."
    )
    parser.add_argument(
        "-n", "--version-number",
        type=int,
        default=None,
        help="With --show: the version to print (default: latest)."
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (default: WARNING, -v: INFO, -vv: DEBUG)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show the program's version number and exit"
    )

    return parser


def _open_repository(basic_config):
    from soilrisk.services.db_engine import create_db_engine
    from soilrisk.services.repository import EvaluationRepository

    db_type = str(basic_config.get('use_database', 'sqlite')).lower()
    if db_type in ('false', 'no', '0'):
        raise ValidationError("A database is required: set use_database in [basic]")
    db_creds = load_config(section=db_type)
    return EvaluationRepository(create_db_engine(db_type, db_creds))


def _build_service(basic_config):
    from soilrisk.services.sources import (
        CatalogStandardSource, ConfigIdentityProvider, RepositoryProjectSource
    )
    from soilrisk.services.version_store import EvaluationVersionStore
    from soilrisk.workflows import EvaluationService

    repository = _open_repository(basic_config)
    store = EvaluationVersionStore(
        repository,
        settings=load_evaluation_settings(),
        loss_rate_settings=load_loss_rate_settings(),
    )
    catalog = get_catalog(basic_config.get('standards_file') or None)
    return EvaluationService(
        store,
        project_source=RepositoryProjectSource(repository),
        standard_source=CatalogStandardSource(catalog),
        identity_provider=ConfigIdentityProvider(),
    )


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _list_standards(basic_config):
    catalog = get_catalog(basic_config.get('standards_file') or None)
    for standard_id in catalog.standard_ids:
        standard = catalog.get_standard(standard_id)
        print(f"{standard_id:<16} {standard.name} ({len(standard.parameters)} parameters)")
        for code, reason in standard.rejected.items():
            print(f"{'':<16} ! {code} disabled: {reason}")


def _run_action(args, basic_config):
    if args.init_db:
        repository = _open_repository(basic_config)
        repository.create_schema()
        print(f"Schema ready on {repository.db_type}")
        return

    if args.list_standards:
        _list_standards(basic_config)
        return

    service = _build_service(basic_config)

    if args.evaluate:
        if not args.standard or not args.datapoints:
            raise ValidationError("--evaluate needs --standard and --datapoints")
        if args.preview:
            document = service.preview(args.evaluate, args.standard, args.datapoints, args.recommendations)
            _print_json(document.to_dict())
            return
        version = service.evaluate(args.evaluate, args.standard, args.datapoints, args.recommendations)
        print(f"Output {version.output_id} version {version.version_number}: "
              f"total {version.total_rating}, class {version.classification} ({version.stress})")
        if version.unrated:
            print(f"{len(version.unrated)} value(s) could not be rated, see the report")
        return

    if args.show:
        version = service.get_version(args.show, args.version_number)
        _print_json(service.render_report(version).to_dict())
        return

    if args.history:
        history = service.version_history(args.history)
        print(history.to_string(index=False))
        return

    if args.list_outputs is not None:
        outputs = service.list_outputs(args.list_outputs or None)
        if outputs.empty:
            print("No analysis outputs found")
        else:
            print(outputs.to_string(index=False))


def main(argv=None):
    parser = _setup_arguments()
    args = parser.parse_args(argv)

    actions = (args.init_db, args.list_standards, args.evaluate, args.show, args.history,
               args.list_outputs is not None, args.check_config)
    if not any(actions):
        parser.print_help()
        return 0

    # 1. Setup Logging
    log_name = f"soilrisk_{datetime.now().strftime('%Y%m%d')}"
    if args.check_config:
        log_level, log_file_path = setup_main_logging(args.verbose + 1, log_name, log_dir="logs/log")
    else:
        log_level, log_file_path = setup_main_logging(args.verbose, log_name, log_dir="logs/log")

    signal.signal(signal.SIGTERM, _handle_termination_signal)
    signal.signal(signal.SIGINT, _handle_termination_signal)
    try:
        signal.signal(signal.SIGHUP, _handle_termination_signal)
    except AttributeError:
        pass  # SIGHUP not available on Windows

    logger.info(f"--- {parser.prog} Starting ---")
    logger.info(f"Arguments: {vars(args)}")
    logger.info(f"Log level set to: {logging.getLevelName(log_level)}")

    if args.check_config:
        from soilrisk.services.health_check import check_configurations
        if check_configurations():
            logger.info("--- ✅ All checks passed ---")
            return 0
        logger.error("--- ❌ One or more checks FAILED ---")
        return 1

    # 2. Load basic config
    try:
        basic_config = load_config(section='basic')
    except (FileNotFoundError, KeyError) as e:
        logger.critical(f"Failed to load [basic] config: {e}. Exiting.")
        return 1

    # 3. Dispatch
    try:
        _run_action(args, basic_config)
    except (ValidationError, NotFoundError, VersionConflictError, CatalogError,
            FileNotFoundError, KeyError, SQLAlchemyError) as e:
        logger.debug("Traceback:", exc_info=True)
        if isinstance(e, KeyError) and e.args:
            message = e.args[0]
        elif isinstance(e, SQLAlchemyError):
            # First line only: the driver error without the SQL text
            message = (str(e).splitlines() or [type(e).__name__])[0]
        else:
            message = e
        print(f"Error: {message}", file=sys.stderr)
        logger.error(f"{type(e).__name__}: {message}")
        return 1

    logger.info(f"--- {parser.prog} Finished ---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
