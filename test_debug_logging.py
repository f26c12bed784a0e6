#!/usr/bin/env python3
"""
Tests for the logging helpers and configuration defaults.
"""

import logging

from config import Config, TestingConfig
from debug_logging import log_api_call, log_user_action, setup_logging


def test_setup_logging_returns_named_loggers():
    loggers = setup_logging('INFO', log_dir=None)

    assert loggers['main'].name == 'bytehub'
    assert loggers['api'].name == 'bytehub.api'
    assert loggers['engagement'].name == 'bytehub.engagement'
    assert loggers['storage'].name == 'bytehub.storage'


def test_log_user_action(caplog):
    with caplog.at_level(logging.DEBUG, logger='bytehub'):
        log_user_action('alice', 'hub_created', {'hubId': 'h1'})

    assert 'User alice: hub_created' in caplog.text
    assert '"hubId": "h1"' in caplog.text


def test_log_api_call(caplog):
    with caplog.at_level(logging.INFO, logger='bytehub.api'):
        log_api_call('/hubs', 'GET', None, 200)

    assert 'GET /hubs (user: anonymous) -> 200' in caplog.text


def test_testing_config():
    assert TestingConfig.TESTING is True
    assert TestingConfig.LOG_DIR is None
    assert Config.MAX_LIST_LIMIT >= Config.DEFAULT_LIST_LIMIT
