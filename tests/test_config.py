"""
Test suite for the global configuration and utilities.

Tests cover:
- Default values and reset
- Temporary configuration
- Strict and lenient validation
- Fatal errors and timing
"""

import logging

import pytest

from orrery import config, temp_config
from orrery.config import OrreryConfig
from orrery.utils import Timer, fatal_error, validation_error


class TestConfig:
    """Test package-wide configuration."""

    def test_defaults(self):
        """Defaults of the ephemeris and Taylor integrator."""
        defaults = OrreryConfig()
        assert defaults.DEFAULT_INTEGRATOR == 'forest_ruth'
        assert defaults.DEFAULT_STEP == 60.0
        assert defaults.TAYLOR_TOLERANCE == 1e-15
        assert defaults.STRICT_VALIDATION is True

    def test_reset(self):
        """reset() restores every default."""
        config.DEFAULT_STEP = 1.0
        config.DEFAULT_INTEGRATOR = 'leapfrog'
        try:
            config.reset()
            assert config.DEFAULT_STEP == 60.0
            assert config.DEFAULT_INTEGRATOR == 'forest_ruth'
        finally:
            config.reset()

    def test_temp_config_restores(self):
        """Values are restored on exit."""
        with temp_config(DEFAULT_STEP=10.0) as c:
            assert c.DEFAULT_STEP == 10.0
            assert config.DEFAULT_STEP == 10.0
        assert config.DEFAULT_STEP == 60.0

    def test_temp_config_restores_on_exception(self):
        """Values are restored even if the block raises."""
        with pytest.raises(RuntimeError):
            with temp_config(DEFAULT_STEP=10.0):
                raise RuntimeError("boom")
        assert config.DEFAULT_STEP == 60.0

    def test_temp_config_unknown_attribute(self):
        """Unknown attributes are rejected."""
        with pytest.raises(AttributeError, match="has no attribute 'NOPE'"):
            with temp_config(NOPE=1):
                pass

    def test_repr(self):
        """repr lists the settings."""
        text = repr(config)
        assert text.startswith("OrreryConfig:")
        assert "DEFAULT_INTEGRATOR = 'forest_ruth'" in text


class TestValidation:
    """Test validation_error and fatal_error."""

    def test_strict_raises(self):
        with pytest.raises(ValueError, match="bad value"):
            validation_error("bad value")

    def test_strict_raises_given_class(self):
        with pytest.raises(RuntimeError, match="failed"):
            validation_error("failed", RuntimeError)

    def test_lenient_warns(self):
        with temp_config(STRICT_VALIDATION=False):
            with pytest.warns(UserWarning, match="bad value"):
                validation_error("bad value")

    def test_fatal_error_ignores_lenient_mode(self, caplog):
        """Fatal errors always raise and are logged at CRITICAL level."""
        with temp_config(STRICT_VALIDATION=False):
            with caplog.at_level(logging.CRITICAL, logger="orrery.utils"):
                with pytest.raises(ValueError, match="out of domain"):
                    fatal_error("out of domain")
        assert any(record.levelno == logging.CRITICAL
                   and "out of domain" in record.getMessage()
                   for record in caplog.records)


class TestTimer:
    """Test the Timer context manager."""

    def test_elapsed(self):
        with Timer(verbose=False) as t:
            sum(range(1000))
        assert t.elapsed is not None
        assert t.elapsed >= 0.0

    def test_logs_when_verbose(self, caplog):
        with caplog.at_level(logging.INFO, logger="orrery.utils"):
            with Timer("Summing"):
                sum(range(1000))
        assert any(record.getMessage().startswith("Summing: ")
                   for record in caplog.records)

    def test_silent_when_not_verbose(self, caplog):
        with caplog.at_level(logging.INFO, logger="orrery.utils"):
            with Timer("Summing", verbose=False):
                sum(range(1000))
        assert not any("Summing" in record.getMessage()
                       for record in caplog.records)
