import logging

from shared.logging.logging_setup import ColorLogger, ConsoleFormatter, PdfParserFilter, ZonedFormatter, setup_logging


def _record(level: int, msg: str, name: str = "persona_ai_bridge", args=()) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, msg, args, None)


class TestFormatting:
    """Prefixes, colors and filters."""

    def test_level_prefixes(self):
        """Warnings and errors get a marker, info lines stay bare."""
        formatter = ZonedFormatter("UTC", "%(message)s")
        assert formatter.format(_record(logging.INFO, "saved %s", args=("x",))) == "saved x"
        assert formatter.format(_record(logging.WARNING, "slow")) == "⚠️ slow"
        assert formatter.format(_record(logging.ERROR, "down")) == "⛔ down"

    def test_record_shared_by_handlers(self):
        """Formatting for one handler leaves the record untouched for the next."""
        record = _record(logging.WARNING, "disk %s", args=("almost full",))
        file_formatter = ZonedFormatter("UTC", "%(levelname)s - %(message)s")
        console_formatter = ConsoleFormatter("UTC", "%(levelname)s - %(message)s")
        assert console_formatter.format(record) == "WARNING - ⚠️ disk almost full"
        assert file_formatter.format(record) == "WARNING - ⚠️ disk almost full"
        assert record.msg == "disk %s"
        assert record.args == ("almost full",)

    def test_broken_args_keep_template(self):
        """A record whose args do not fit its template is still rendered."""
        formatter = ZonedFormatter("UTC", "%(message)s")
        assert formatter.format(_record(logging.INFO, "%d items", args=("many",))) == "%d items"

    def test_console_color(self):
        """Records with a color attribute are wrapped in ANSI codes."""
        record = _record(logging.INFO, "ready")
        record.color = "green"
        assert ConsoleFormatter("UTC", "%(message)s").format(record) == "\033[32mready\033[0m"

    def test_pdf_filter(self):
        """pypdf warnings are dropped, its errors and other loggers pass."""
        pdf_filter = PdfParserFilter()
        assert pdf_filter.filter(_record(logging.WARNING, "xref", name="pypdf._reader")) is False
        assert pdf_filter.filter(_record(logging.ERROR, "broken", name="pypdf._reader")) is True
        assert pdf_filter.filter(_record(logging.WARNING, "slow", name="httpx")) is True


class TestColorLogger:
    """Wrapper behavior."""

    def test_color_travels_as_extra(self, caplog):
        """color= ends up on the record, the message is unchanged."""
        logger = ColorLogger(logging.getLogger("persona_ai_bridge.tests.color"))
        with caplog.at_level(logging.INFO, logger="persona_ai_bridge.tests.color"):
            logger.info("Ingested %s", "item-1", color="cyan")
        assert caplog.records[-1].getMessage() == "Ingested item-1"
        assert caplog.records[-1].color == "cyan"
        assert caplog.records[-1].filename == "test_logging.py"

    def test_delegates_logger_attributes(self):
        """Unknown attributes come from the wrapped logger."""
        logger = ColorLogger(logging.getLogger("persona_ai_bridge.tests.delegate"))
        assert logger.name == "persona_ai_bridge.tests.delegate"


class TestSetup:
    """Process-wide configuration."""

    def test_log_file_under_root_dir(self, monkeypatch, tmp_path):
        """The file handler writes to {ROOT_DIR}/logs/app.log."""
        monkeypatch.setenv("ROOT_DIR", str(tmp_path))
        monkeypatch.setenv("TIMEZONE", "UTC")
        root = logging.getLogger()
        previous = root.handlers[:]
        try:
            logger = setup_logging("persona_ai_bridge.tests.setup")
            logger.warning("disk almost full")
            for handler in root.handlers:
                handler.flush()
            content = (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
            assert "WARNING - ⚠️ disk almost full" in content
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = previous
