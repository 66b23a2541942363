"""Tests for logging setup and password masking."""

import logging

from common.logging_config import SensitiveDataFilter, session_logger, setup_logging


def make_record(msg, args=None):
    return logging.LogRecord('relay', logging.INFO, __file__, 1, msg, args, None)


def test_query_password_is_masked():
    record = make_record('GET /ws?sessionId=abcd1234&password=hunter2&role=viewer')

    SensitiveDataFilter().filter(record)

    assert 'hunter2' not in record.getMessage()
    assert 'sessionId=abcd1234' in record.getMessage()


def test_json_password_is_masked():
    record = make_record('body=%s', ('{"password": "hunter2"}',))

    SensitiveDataFilter().filter(record)

    assert 'hunter2' not in record.getMessage()


def test_session_logger_prefixes_context(caplog):
    logger = logging.getLogger('tests.session')
    adapter = session_logger(logger, 'abcd1234', 'initiator')

    with caplog.at_level(logging.INFO, logger='tests.session'):
        adapter.info('joined')

    assert '[session=abcd1234 role=initiator] joined' in caplog.text


def test_setup_logging_is_idempotent():
    logger = setup_logging('tests_component', log_level='DEBUG')
    handlers = list(logger.handlers)

    again = setup_logging('tests_component', log_level='DEBUG')

    assert again is logger
    assert again.handlers == handlers
    assert logger.level == logging.DEBUG
