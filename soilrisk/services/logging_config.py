import logging
import sys
import os


class OutputContextFilter(logging.Filter):
    """Makes sure every record has an output_id, for the shared format string."""
    def filter(self, record):
        if not hasattr(record, 'output_id'):
            record.output_id = "-"
        return True


def setup_main_logging(verbosity_level: int, log_name: str, log_dir: str = "logs/log"):
    """
    Configures the root logger for the main process.
    Logs to both the console (stderr, so stdout carries only command output) and a named file.

    Verbosity levels:
    0 (default): WARNING
    1 (-v):      INFO
    2+ (-vv...): DEBUG
    """
    # Map integer count to logging level
    if verbosity_level == 0:
        log_level = logging.WARNING
    elif verbosity_level == 1:
        log_level = logging.INFO
    else:  # 2 or more
        log_level = logging.DEBUG

    os.makedirs(log_dir, exist_ok=True)

    # Never overwrite an earlier run: append (1), (2), ...
    log_file_path = os.path.join(log_dir, f"{log_name}.log")
    counter = 1
    while os.path.exists(log_file_path):
        log_file_path = os.path.join(log_dir, f"{log_name}({counter}).log")
        counter += 1

    formatter = logging.Formatter(
        "[%(asctime)s] [%(name)-30s] [%(output_id)-12s] [%(levelname)-8s] %(message)s",
        "%Y-%m-%d %H:%M:%S"
    )
    context_filter = OutputContextFilter()

    handlers = [logging.StreamHandler(sys.stderr), logging.FileHandler(log_file_path)]
    for h in handlers:
        h.setFormatter(formatter)
        h.addFilter(context_filter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # Suppress overly verbose libraries
    logging.captureWarnings(True)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Main logger configured. Level: {logging.getLevelName(log_level)}. Log file: {log_file_path}"
    )
    return log_level, log_file_path


def get_output_logger(name: str, output_id: str):
    """
    Returns a LoggerAdapter that injects the analysis output id into log messages.
    """
    return logging.LoggerAdapter(logging.getLogger(name), {"output_id": output_id})
