"""Unit tests for the logging helpers."""

import logging

import pytest

from bivardpp.utils.logging import (
    MinimalLogger,
    configure_logging,
    get_logger,
    log_operation,
    log_performance,
)


@pytest.fixture
def restore_level():
    yield
    configure_logging("WARNING")


class TestGetLogger:
    def test_names_are_rooted_at_package(self):
        assert get_logger("worker").name == "bivardpp.worker"
        assert get_logger("bivardpp.core.gaussian").name == "bivardpp.core.gaussian"
        assert get_logger("__main__").name == "bivardpp.main"

    def test_default_name_is_caller_module(self):
        assert get_logger().name == f"bivardpp.{__name__}"

    def test_manager_is_singleton(self):
        assert MinimalLogger() is MinimalLogger()

    def test_configure_sets_root_level(self, restore_level):
        configure_logging("error")
        assert logging.getLogger("bivardpp").level == logging.ERROR


class TestLogPerformance:
    def test_logs_slow_calls(self, caplog):
        @log_performance(threshold=0.0)
        def square(x):
            return x * x

        with caplog.at_level(logging.DEBUG, logger="bivardpp"):
            assert square(3) == 9
        assert "square completed" in caplog.text

    def test_quiet_below_threshold(self, caplog):
        @log_performance(threshold=60.0)
        def identity(x):
            return x

        with caplog.at_level(logging.DEBUG, logger="bivardpp"):
            identity(1)
        assert "completed" not in caplog.text

    def test_failures_are_logged_and_raised(self, caplog):
        @log_performance()
        def broken():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="bivardpp"):
            with pytest.raises(RuntimeError):
                broken()
        assert "failed after" in caplog.text


class TestLogOperation:
    def test_start_and_completion(self, caplog):
        logger = get_logger("operations")
        with caplog.at_level(logging.DEBUG, logger="bivardpp"):
            with log_operation("setup", logger) as active:
                assert active is logger
        assert "Starting operation: setup" in caplog.text
        assert "Completed operation: setup" in caplog.text

    def test_failure_is_reraised(self, caplog):
        with caplog.at_level(logging.ERROR, logger="bivardpp"):
            with pytest.raises(KeyError):
                with log_operation("lookup", get_logger("operations")):
                    raise KeyError("missing")
        assert "Failed operation: lookup" in caplog.text
