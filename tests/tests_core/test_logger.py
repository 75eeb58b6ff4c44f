"""
===============================================
Pytest suite for core/logger.py
===============================================

Available markers:
------------------
unit, integration

How to Execute:
---------------
All tests:          pytest tests/tests_core/test_logger.py -v
"""

import logging

import pytest

from core.logger import ColoredFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    """Restore root handlers and level after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
def test_get_logger_with_level():
    logger = get_logger('tests.logger.level', level='warning')
    assert logger.name == 'tests.logger.level'
    assert logger.level == logging.WARNING


@pytest.mark.unit
def test_colored_formatter_does_not_mutate_record():
    formatter = ColoredFormatter('%(emoji)s %(levelname)s %(message)s')
    record = logging.LogRecord('x', logging.ERROR, __file__, 1, 'boom', None, None)

    output = formatter.format(record)

    assert '❌' in output
    assert '\033[31mERROR' in output
    assert record.levelname == 'ERROR'
    assert not hasattr(record, 'emoji')


@pytest.mark.integration
def test_setup_logging_with_file(tmp_path, restore_root_logger):
    setup_logging(log_level='DEBUG', log_file='queries.log', log_dir=str(tmp_path), use_colors=False)

    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 2

    logging.getLogger('tests.logger.file').debug("SQL: SELECT 1")
    for handler in root.handlers:
        handler.flush()

    content = (tmp_path / 'queries.log').read_text(encoding='utf-8')
    assert 'DEBUG - SQL: SELECT 1' in content
    assert '\033[' not in content


@pytest.mark.integration
def test_setup_logging_without_console(tmp_path, restore_root_logger):
    setup_logging(log_level='INFO', console_output=False)
    assert restore_root_logger.handlers == []
