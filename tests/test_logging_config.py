"""Tests for centralized logging setup."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tapibot.log_context import ContextFilter, ctx_chat_id, ctx_operation, ctx_update_id


class TestSetupLogging:
    def test_sets_root_level(self) -> None:
        from tapibot.logging_config import setup_logging

        setup_logging(level=logging.WARNING, log_dir=None)
        assert logging.getLogger().level == logging.WARNING

    def test_verbose_sets_debug(self) -> None:
        from tapibot.logging_config import setup_logging

        setup_logging(verbose=True, log_dir=None)
        assert logging.getLogger().level == logging.DEBUG

    def test_file_handler_when_log_dir(self, tmp_path: Path) -> None:
        from tapibot.logging_config import setup_logging

        log_dir = tmp_path / "logs"
        setup_logging(log_dir=log_dir)
        assert log_dir.exists()
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        logging.getLogger("tapibot.test").warning("written")
        file_handlers[0].flush()
        assert "written" in (log_dir / "tapibot.log").read_text(encoding="utf-8")

    def test_access_log_quieted(self) -> None:
        from tapibot.logging_config import setup_logging

        setup_logging(log_dir=None)
        assert logging.getLogger("aiohttp.access").level >= logging.WARNING

    def test_repeated_calls_replace_handlers(self, tmp_path: Path) -> None:
        from tapibot.logging_config import setup_logging

        setup_logging(log_dir=tmp_path)
        setup_logging(log_dir=None)
        assert len(logging.getLogger().handlers) == 1


class TestTokenRedaction:
    _TOKEN = "123456789:AAHdqTcvCH1vGWJxfSeofSAs0K5PALDsaw"

    def test_redact_tokens(self) -> None:
        from tapibot.logging_config import redact_tokens

        url = f"https://api.telegram.org/bot{self._TOKEN}/getMe"
        assert redact_tokens(url) == "https://api.telegram.org/bot<token>/getMe"
        assert redact_tokens("chat 123456 said 12:30") == "chat 123456 said 12:30"

    def test_filter_masks_formatted_args(self) -> None:
        from tapibot.logging_config import TokenRedactingFilter

        record = logging.LogRecord(
            "t", logging.INFO, __file__, 1, "POST /%s failed", (self._TOKEN,), None
        )
        assert TokenRedactingFilter().filter(record) is True
        assert record.getMessage() == "POST /<token> failed"


class TestContextFilter:
    def _record(self) -> logging.LogRecord:
        return logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)

    def test_empty_context(self) -> None:
        tokens = [ctx_operation.set(None), ctx_chat_id.set(None), ctx_update_id.set(None)]
        try:
            record = self._record()
            assert ContextFilter().filter(record) is True
            assert record.ctx == ""
        finally:
            ctx_update_id.reset(tokens[2])
            ctx_chat_id.reset(tokens[1])
            ctx_operation.reset(tokens[0])

    def test_full_context(self) -> None:
        tokens = [ctx_operation.set("wh"), ctx_chat_id.set(42), ctx_update_id.set(7)]
        try:
            record = self._record()
            ContextFilter().filter(record)
            assert record.ctx == "[wh:42:u7] "
        finally:
            ctx_update_id.reset(tokens[2])
            ctx_chat_id.reset(tokens[1])
            ctx_operation.reset(tokens[0])
