"""
Tests de utilidades de logging
"""
import logging

from rentals.utils.logging import get_logger


def test_get_logger_delegates_handlers_to_root():
    logger = get_logger("rentals.tests.logging")

    assert logger is logging.getLogger("rentals.tests.logging")
    assert logger.handlers == []
    assert logger.propagate is True
