# tests/test_logging_config.py
import logging

import pytest

from soilrisk.services.logging_config import OutputContextFilter, get_output_logger, setup_main_logging


@pytest.mark.parametrize("verbosity,expected", [
    (0, logging.WARNING),
    (1, logging.INFO),
    (2, logging.DEBUG),
    (5, logging.DEBUG),
])
def test_verbosity_levels(tmp_path, restore_root_logging, verbosity, expected):
    level, _ = setup_main_logging(verbosity, 'run', log_dir=str(tmp_path))
    assert level == expected
    assert logging.getLogger().level == expected


def test_log_files_are_never_overwritten(tmp_path, restore_root_logging):
    """A second run with the same name gets a numbered file."""
    _, first = setup_main_logging(1, 'soilrisk_20240502', log_dir=str(tmp_path))
    _, second = setup_main_logging(1, 'soilrisk_20240502', log_dir=str(tmp_path))

    assert first.endswith('soilrisk_20240502.log')
    assert second.endswith('soilrisk_20240502(1).log')


def test_output_id_reaches_the_log_file(tmp_path, restore_root_logging):
    _, path = setup_main_logging(1, 'run', log_dir=str(tmp_path))

    get_output_logger('soilrisk.tests', 'OUT1').info('version created')
    logging.getLogger('soilrisk.tests').info('no output')
    for handler in logging.getLogger().handlers:
        handler.flush()

    with open(path) as f:
        lines = f.read().splitlines()
    assert any('[OUT1' in line and 'version created' in line for line in lines)
    assert any('[-' in line and 'no output' in line for line in lines)


def test_context_filter_default():
    record = logging.LogRecord('x', logging.INFO, __file__, 1, 'msg', None, None)
    assert OutputContextFilter().filter(record) is True
    assert record.output_id == '-'
