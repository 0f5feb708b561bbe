"""Tests for contractcompat configuration and logging setup."""

from __future__ import annotations

import io
import json
import logging

import pytest
from pydantic import ValidationError

from contractcompat.config import get_config, get_max_workers, reset_config
from contractcompat.logging_setup import PACKAGE_LOGGER, configure_logging
from contractcompat.types import Classification


class TestConfig:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CONTRACTCOMPAT_MAX_WORKERS", "6")
        monkeypatch.setenv("CONTRACTCOMPAT_FAIL_ON", "UNKNOWN")
        reset_config()
        config = get_config()
        assert config.max_workers == 6
        assert config.fail_threshold == Classification.UNKNOWN
        assert get_max_workers() == 6

    def test_singleton(self):
        assert get_config() is get_config()

    def test_overrides_replace_singleton(self):
        config = get_config(output_format="yaml")
        assert config.output_format == "yaml"
        assert get_config() is config

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CONTRACTCOMPAT_LOG_LEVEL", raising=False)
        reset_config()
        config = get_config()
        assert config.log_level == "info"
        assert config.fail_on == "breaking"
        assert config.logging_level == logging.INFO

    def test_invalid_worker_count(self):
        with pytest.raises(ValidationError):
            get_config(max_workers=0)


class TestConfigureLogging:
    def _cleanup(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    def test_json_lines(self):
        stream = io.StringIO()
        try:
            logger = configure_logging(level="info", fmt="json", stream=stream)
            logging.getLogger("contractcompat.graph").info("graph ready")
            line = json.loads(stream.getvalue().strip())
            assert line["message"] == "graph ready"
            assert line["level"] == "info"
            assert line["logger"] == "contractcompat.graph"
            assert logger.level == logging.INFO
        finally:
            self._cleanup()

    def test_reconfigure_replaces_handler(self):
        try:
            configure_logging(fmt="text", stream=io.StringIO())
            logger = configure_logging(fmt="text", stream=io.StringIO())
            assert len(logger.handlers) == 1
        finally:
            self._cleanup()

    def test_level_from_config(self):
        try:
            logger = configure_logging(stream=io.StringIO())
            # conftest sets CONTRACTCOMPAT_LOG_LEVEL=debug
            assert logger.level == logging.DEBUG
        finally:
            self._cleanup()
