"""Tests for structured logging configuration."""

from __future__ import annotations

import importlib
import json

import pytest
import structlog

from bulkspine.core.logging import LogContext, clear_context, configure_logging, get_logger

# Created before any configure_logging call, like a module-level logger
_early_logger = get_logger("bulkspine.tests.early")


def _last_json_line(text: str) -> dict:
    lines = [line for line in text.splitlines() if line.strip().startswith("{")]
    assert lines, f"no JSON log line in {text!r}"
    return json.loads(lines[-1])


class TestConfigureLogging:
    def test_json_output_is_ecs_shaped(self, capsys):
        configure_logging(level="DEBUG", json_format=True, service="bulk-spine-test")
        get_logger("tests").info("job.started", rows=3)

        record = _last_json_line(capsys.readouterr().out)
        assert record["event"] == "job.started"
        assert record["rows"] == 3
        assert record["log.level"] == "info"
        assert record["service.name"] == "bulk-spine-test"
        assert "@timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("tests").info("quiet")
        assert "quiet" not in capsys.readouterr().out

    def test_console_renderer(self, capsys):
        configure_logging(level="INFO", json_format=False)
        get_logger("tests").info("hello.console")
        assert "hello.console" in capsys.readouterr().out


class TestLogContext:
    def test_sync_context_binds_and_unbinds(self, capsys):
        configure_logging(level="INFO", json_format=True)
        log = get_logger("tests")
        with LogContext(job_id="c_p_t"):
            log.info("inside")
        log.info("outside")

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
        assert lines[-2]["job_id"] == "c_p_t"
        assert "job_id" not in lines[-1]
        clear_context()

    async def _bound(self) -> dict:
        async with LogContext(job_id="async-job"):
            return structlog.contextvars.get_contextvars()

    def test_async_context(self):
        import asyncio

        bound = asyncio.run(self._bound())
        assert bound["job_id"] == "async-job"
        assert "job_id" not in structlog.contextvars.get_contextvars()


class TestGetLogger:
    @pytest.mark.parametrize(
        "module_name",
        [
            "bulkspine.execution.registry",
            "bulkspine.execution.orchestrator",
            "bulkspine.core.events.memory",
            "bulkspine.api.routers.jobs",
        ],
    )
    def test_module_logger_works_unconfigured(self, module_name, capsys):
        module = importlib.import_module(module_name)
        module.logger.info("unconfigured.call", value=1)
        assert "unconfigured.call" in capsys.readouterr().out

    def test_import_time_logger_follows_later_configuration(self, capsys):
        configure_logging(level="INFO", json_format=True)
        _early_logger.info("late.configured")

        record = _last_json_line(capsys.readouterr().out)
        assert record["event"] == "late.configured"
        assert record["log.logger"] == "bulkspine.tests.early"
