"""
Tests for the logging configuration

Covers defaults, config file and environment overrides, handler setup and the
context fields stamped on each record.
"""
import json
import logging

import pytest
import yaml

from imap_manager.logging_config import ROOT_LOGGER_NAME, ContextFilter, JSONFormatter, init_logging
from imap_manager.logging_context import with_item_context, with_run_id


@pytest.fixture(autouse=True)
def clean_log_env(monkeypatch):
    for name in ('LOG_LEVEL', 'LOG_FORMAT', 'LOG_FILE', 'LOG_CONSOLE', 'LOG_JSON_FILE', 'LOG_JSON_PATH'):
        monkeypatch.delenv(name, raising=False)


def _record(message='hello', name='imap_manager.orchestrator'):
    return logging.LogRecord(name, logging.INFO, __file__, 1, message, None, None)


def test_init_logging_defaults():
    config = init_logging()
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    assert config['level'] == 'INFO'
    assert logger.level == logging.INFO
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_init_logging_overrides():
    config = init_logging(overrides={'level': 'DEBUG', 'handlers': {'console': {'enabled': False}}})
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    assert config['level'] == 'DEBUG'
    assert logger.level == logging.DEBUG
    assert [type(h) for h in logger.handlers] == [logging.NullHandler]


def test_init_logging_is_repeatable():
    """Test that calling init_logging twice does not duplicate handlers."""
    init_logging()
    init_logging()

    assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1


def test_config_file_logging_section(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(yaml.dump({'imap': {'host': 'x'}, 'logging': {'level': 'WARNING', 'format': 'json'}}))

    config = init_logging(config_path=path)

    assert config['level'] == 'WARNING'
    assert config['format'] == 'json'
    assert config['handlers']['console']['enabled'] is True


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        init_logging(config_path=tmp_path / 'missing.yaml')


def test_env_overrides(monkeypatch, tmp_path):
    log_file = tmp_path / 'logs' / 'run.log'
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    monkeypatch.setenv('LOG_CONSOLE', 'false')
    monkeypatch.setenv('LOG_FILE', str(log_file))

    config = init_logging()

    assert config['level'] == 'DEBUG'
    assert config['handlers']['console']['enabled'] is False
    assert config['handlers']['file']['enabled'] is True
    assert log_file.parent.exists()


def test_json_file_handler(tmp_path):
    """Test that the JSONL handler writes context fields."""
    json_path = tmp_path / 'run.jsonl'
    init_logging(overrides={
        'handlers': {
            'console': {'enabled': False},
            'json_file': {'enabled': True, 'path': str(json_path)},
        }
    })
    logger = logging.getLogger('imap_manager.orchestrator')

    with with_run_id('run-1'):
        with with_item_context(2, operation='move'):
            logger.info('Moved UID 7')
    for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
        handler.flush()

    entry = json.loads(json_path.read_text(encoding='utf-8').strip().splitlines()[-1])
    assert entry['message'] == 'Moved UID 7'
    assert entry['run_id'] == 'run-1'
    assert entry['item_index'] == 2
    assert entry['operation'] == 'move'
    assert entry['component'] == 'orchestrator'


def test_context_filter_defaults():
    record = _record()

    assert ContextFilter().filter(record) is True
    assert record.run_id == '-'
    assert record.item_index == '-'
    assert record.component == 'orchestrator'


def test_json_formatter_omits_unset_context():
    record = _record()
    ContextFilter().filter(record)

    entry = json.loads(JSONFormatter().format(record))

    assert entry['level'] == 'INFO'
    assert 'run_id' not in entry
    assert 'item_index' not in entry
