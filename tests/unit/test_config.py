"""
Unit Tests - Configuration
"""
import logging

import pytest
from pydantic import ValidationError
from structlog.stdlib import ProcessorFormatter

from stats_dashboard.config.logging import configure_logging
from stats_dashboard.config.settings import AggregationSettings, RedisSettings, Settings
from stats_dashboard.serving.dispatcher import create_executor


class TestSettings:
    """Tests for settings validation"""

    def test_testing_environment(self, test_settings):
        assert test_settings.app_env == "testing"
        assert test_settings.debug is True
        assert not test_settings.is_production
        assert not test_settings.is_development

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            Settings(APP_ENV="moon")

    def test_executor_kind_normalised(self):
        assert AggregationSettings(executor="THREAD").executor == "thread"

    def test_unknown_executor_rejected(self):
        with pytest.raises(ValidationError):
            AggregationSettings(executor="gpu")

    def test_redis_url_built_from_parts(self):
        assert RedisSettings(host="cache", port=6380, db=2).get_url() == "redis://cache:6380/2"

    def test_redis_url_override(self):
        assert RedisSettings(REDIS_URL="redis://other:1/0").get_url() == "redis://other:1/0"

    def test_thread_executor(self):
        executor = create_executor("thread")
        try:
            assert executor._max_workers == 1
        finally:
            executor.shutdown()


class TestLogging:
    """Tests for logging configuration"""

    def test_single_root_handler(self):
        configure_logging("DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, ProcessorFormatter)
        assert root.level == logging.DEBUG

    def test_server_loggers_propagate(self):
        configure_logging("INFO")

        access = logging.getLogger("uvicorn.access")
        assert access.handlers == []
        assert access.propagate is True

    def test_http_client_quieted(self):
        configure_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
