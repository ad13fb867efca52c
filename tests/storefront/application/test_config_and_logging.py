import logging
import logging.handlers

import structlog
from protean import current_domain
from storefront.utils import config
from storefront.utils.logging import add_context, clear_context, get_log_level, setup_stdlib_logging


class TestSettings:
    def test_reads_custom_table(self):
        assert config.admin_email() == "orders@storefront.local"
        assert config.checkout_ttl_hours() == 24
        assert config.checkout_abandon_minutes() == 15
        assert config.payment_provider() == "fake"

    def test_falls_back_to_defaults(self, monkeypatch):
        monkeypatch.setitem(current_domain.config, "custom", {})
        assert config.stock_update_attempts() == 3
        assert config.admin_email() == config.DEFAULTS["ADMIN_EMAIL"]

    def test_stock_attempts_never_below_one(self, monkeypatch):
        monkeypatch.setitem(current_domain.config, "custom", {"STOCK_UPDATE_ATTEMPTS": 0})
        assert config.stock_update_attempts() == 1


class TestLogLevel:
    def test_env_default(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "production")
        assert get_log_level() == "INFO"

        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"

    def test_explicit_override(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"

    def test_log_dir_adds_file_handler(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_DIR", str(tmp_path))
        root = logging.getLogger()
        original = root.handlers[:]
        try:
            setup_stdlib_logging()
            file_handlers = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
            assert len(file_handlers) == 1
            assert (tmp_path / "storefront.log").exists()
            assert logging.getLogger("protean").level == logging.WARNING
        finally:
            for handler in root.handlers:
                if handler not in original:
                    handler.close()
            root.handlers = original


class TestContext:
    def test_bound_values_are_merged(self):
        add_context(request_id="req-1")
        try:
            assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}
        finally:
            clear_context()
        assert structlog.contextvars.get_contextvars() == {}
