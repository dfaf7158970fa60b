"""Tests for config loading and logging setup.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest
from rich.logging import RichHandler

from planarmech import enable_logging_handlers
from planarmech.config import CONFIG_DIR_ENV_VAR_NAME, LOGGING, SOLVER, reload_config
from planarmech.config.config import deep_merge, load_config


@pytest.fixture
def user_config_dir(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_DIR_ENV_VAR_NAME, str(tmp_path))
    yield tmp_path
    monkeypatch.delenv(CONFIG_DIR_ENV_VAR_NAME)
    reload_config()


@pytest.fixture
def pkg_logger():
    lg = logging.getLogger("planarmech")
    handlers, level = list(lg.handlers), lg.level
    yield lg
    for h in list(lg.handlers):
        if h not in handlers:
            lg.removeHandler(h)
            h.close()
    lg.setLevel(level)


class TestConfig:
    """Packaged defaults and user overrides."""

    def test_defaults_loaded(self):
        assert SOLVER.max_steps > 0
        assert 0 < SOLVER.atol < 1e-3
        assert LOGGING.console_level == logging.INFO

    def test_deep_merge(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        assert deep_merge(base, {"a": {"b": 5}}) == {"a": {"b": 5, "c": 2}, "d": 3}
        assert base == {"a": {"b": 1, "c": 2}, "d": 3}

    def test_user_override(self, user_config_dir):
        (user_config_dir / "default.yml").write_text("solver:\n  max_steps: 7\n")
        defaults_rtol = load_config()["solver"]["rtol"]
        reload_config()
        assert SOLVER.max_steps == 7
        assert SOLVER.rtol == pytest.approx(float(defaults_rtol))

    def test_missing_user_file_uses_defaults(self, user_config_dir):
        reload_config()
        assert SOLVER.max_steps == load_config()["solver"]["max_steps"]

    def test_invalid_log_level(self, user_config_dir):
        (user_config_dir / "default.yml").write_text("logging:\n  console_level: LOUD\n")
        with pytest.raises(ValueError, match="console_level"):
            reload_config()

    def test_missing_resource(self):
        with pytest.raises(ValueError, match="not found"):
            load_config("nonexistent")


class TestLogging:
    """Handler installation on the package logger."""

    def test_console_handler(self, pkg_logger):
        enable_logging_handlers(console_level=logging.WARNING)
        rich = [h for h in pkg_logger.handlers if isinstance(h, RichHandler)]
        assert len(rich) == 1
        assert rich[0].level == logging.WARNING

    def test_explicit_notset_level(self, pkg_logger):
        """``NOTSET`` is a real level, not a request for the config default."""
        enable_logging_handlers(console_level=logging.NOTSET)
        rich = [h for h in pkg_logger.handlers if isinstance(h, RichHandler)]
        assert rich[0].level == logging.NOTSET
        assert pkg_logger.level == logging.NOTSET

    def test_repeat_call_replaces_handlers(self, pkg_logger):
        enable_logging_handlers()
        enable_logging_handlers()
        assert sum(isinstance(h, RichHandler) for h in pkg_logger.handlers) == 1

    def test_file_handler(self, pkg_logger, tmp_path):
        log_file = tmp_path / "logs" / "planarmech.log"
        enable_logging_handlers(file=log_file, file_level=logging.DEBUG)
        files = [h for h in pkg_logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(files) == 1
        logging.getLogger("planarmech.acausal.system").debug("probe message")
        files[0].flush()
        assert "probe message" in log_file.read_text(encoding="utf-8")
