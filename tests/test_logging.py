"""
Tests for structured logging to streams and JSON log files.
"""

import msgspec
import pytest

from chainscale.logging import Logger, LoggingConfig, LogLevel
from chainscale.scenario.logging_models import RunnerError, RunnerInfo


class TestLogger:
    """Test entry routing and filtering."""

    @pytest.mark.asyncio
    async def test_entries_are_written_as_json_lines(self, tmp_path):
        LoggingConfig().update(log_level="info")
        logger = Logger()
        logger.configure(name="runner", path=str(tmp_path / "run.json"))

        await logger.log(RunnerInfo(message="Run started", deployment_id="abc"), name="runner")
        await logger.log(RunnerError(message="Run failed", deployment_id="abc"), name="runner")
        await logger.close()

        records = [msgspec.json.decode(line) for line in (tmp_path / "run.json").read_bytes().splitlines()]
        assert [record["entry"]["message"] for record in records] == ["Run started", "Run failed"]
        assert records[0]["entry"]["deployment_id"] == "abc"
        assert records[0]["entry"]["level"] == "INFO"
        assert records[0]["function_name"] == "test_entries_are_written_as_json_lines"

    @pytest.mark.asyncio
    async def test_entries_below_level_are_dropped(self, tmp_path):
        logger = Logger()
        logger.configure(name="runner", path=str(tmp_path / "run.json"))

        await logger.log(RunnerInfo(message="Run started", deployment_id="abc"), name="runner")
        await logger.log(RunnerError(message="Run failed", deployment_id="abc"), name="runner")
        await logger.close()

        [line] = (tmp_path / "run.json").read_bytes().splitlines()
        assert msgspec.json.decode(line)["entry"]["level"] == LogLevel.ERROR.value

    @pytest.mark.asyncio
    async def test_stream_output_uses_template(self, capsys):
        logger = Logger()

        await logger.log(RunnerError(message="Run failed", deployment_id="abc"))
        await logger.close()

        captured = capsys.readouterr()
        assert "ERROR" in captured.err
        assert "Run failed" in captured.err
