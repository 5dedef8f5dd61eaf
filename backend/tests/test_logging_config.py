import logging
from datetime import datetime, timezone

import pytest

import campus_assistant.utils.logging_config as mod


class _FixedDateTime:
    @classmethod
    def now(cls):  # noqa: N805
        return datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_setup_logging_creates_handlers_and_files(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    old_level = root.level
    old_handlers = list(root.handlers)

    monkeypatch.setattr(mod, "datetime", _FixedDateTime)

    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    try:
        mod.setup_logging(log_level="DEBUG", log_dir=str(log_dir), app_name="campus")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 3

        paths = []
        for h in root.handlers:
            if isinstance(h, logging.FileHandler):
                paths.append(h.baseFilename)

        assert any(p.endswith("campus_2026-01-01.log") for p in paths)
        assert any(p.endswith("campus_error_2026-01-01.log") for p in paths)

        assert (log_dir / "campus_2026-01-01.log").exists()
        assert (log_dir / "campus_error_2026-01-01.log").exists()

        assert logging.getLogger("uvicorn").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
    finally:
        root.handlers = old_handlers
        root.setLevel(old_level)

