#!/usr/bin/env python3
"""
Logging setup for the ByteHub API.
Provides the named loggers used across the stores and routes, plus small
helpers for recording user actions and API calls.
"""

import logging
import logging.handlers
import json
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured = False


def setup_logging(level='INFO', log_dir='logs'):
    """Configure the root handlers once and return the ByteHub loggers"""
    global _configured

    if not _configured:
        handlers = [logging.StreamHandler(sys.stdout)]
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, 'bytehub.log'), maxBytes=5 * 1024 * 1024, backupCount=3))

        logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)
        _configured = True

    main_logger = logging.getLogger('bytehub')
    main_logger.setLevel(level)

    return {
        'main': main_logger,
        'api': logging.getLogger('bytehub.api'),
        'engagement': logging.getLogger('bytehub.engagement'),
        'storage': logging.getLogger('bytehub.storage'),
    }


def log_user_action(user_id, action, details=None):
    """Log a user-visible mutation (hub created, file uploaded, star, follow...)"""
    logger = logging.getLogger('bytehub')
    logger.info(f"User {user_id}: {action}")
    if details:
        logger.debug(f"Details: {json.dumps(details, default=str)}")


def log_api_call(endpoint, method, user_id, status_code=None):
    """Log an API call with the resolved caller"""
    api_logger = logging.getLogger('bytehub.api')
    caller = user_id or 'anonymous'
    if status_code is None:
        api_logger.info(f"API Call: {method} {endpoint} (user: {caller})")
    else:
        api_logger.info(f"API Call: {method} {endpoint} (user: {caller}) -> {status_code}")


if __name__ == "__main__":
    loggers = setup_logging('DEBUG', log_dir=None)
    loggers['main'].info("Testing ByteHub logging...")
    log_api_call('/hubs', 'GET', None)
    log_user_action('test_user', 'hub_created', {'hubId': 'hub_1'})
    print("Logging system test complete!")
