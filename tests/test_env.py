"""
Tests for configuration loading and duration parsing.
"""

import pydantic
import pytest

from chainscale.env import Env, load_env, parse_duration
from chainscale.logging import LoggingConfig, LogLevel, StreamType


ENV_KEYS = [
    "CHAINSCALE_VALIDATORS",
    "CHAINSCALE_EXECUTORS",
    "CHAINSCALE_RUN_DURATION",
    "CHAINSCALE_NODE_CONTROL",
    "CHAINSCALE_TX_RATE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    return monkeypatch


class TestParseDuration:
    """Test duration strings."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("60s", 60.0),
            ("2m", 120.0),
            ("1h", 3600.0),
            ("250ms", 0.25),
            ("1m30s", 90.0),
            ("45", 45.0),
            (12, 12.0),
            (1.5, 1.5),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    def test_unparseable(self):
        with pytest.raises(ValueError):
            parse_duration("soon")


class TestEnv:
    """Test the Env model."""

    def test_defaults(self):
        env = Env()

        assert env.run_duration == 60.0
        assert env.readiness_timeout == 60.0
        assert env.k8s_rollout_timeout == 180.0
        assert env.CHAINSCALE_NODE_CONTROL is False

    def test_strict_types(self):
        with pytest.raises(pydantic.ValidationError):
            Env(CHAINSCALE_VALIDATORS="3")


class TestLoadEnv:
    """Test resolving options from the process and a dotenv file."""

    def test_process_environment(self, clean_env, tmp_path):
        clean_env.setenv("CHAINSCALE_VALIDATORS", "3")
        clean_env.setenv("CHAINSCALE_NODE_CONTROL", "true")

        env = load_env(env_file=str(tmp_path / "missing.env"))

        assert env.CHAINSCALE_VALIDATORS == 3
        assert env.CHAINSCALE_NODE_CONTROL is True

    def test_dotenv_wins_over_process(self, clean_env, tmp_path):
        clean_env.setenv("CHAINSCALE_VALIDATORS", "3")
        env_file = tmp_path / ".env"
        env_file.write_text(
            "CHAINSCALE_VALIDATORS=5\nCHAINSCALE_RUN_DURATION=2m\nUNRELATED=1\n"
        )

        env = load_env(env_file=str(env_file))

        assert env.CHAINSCALE_VALIDATORS == 5
        assert env.run_duration == 120.0

    def test_override_wins_over_everything(self, clean_env, tmp_path):
        clean_env.setenv("CHAINSCALE_VALIDATORS", "3")
        clean_env.setenv("CHAINSCALE_TX_RATE", "9")

        env = load_env(
            env_file=str(tmp_path / "missing.env"),
            override=Env(CHAINSCALE_VALIDATORS=7),
        )

        assert env.CHAINSCALE_VALIDATORS == 7
        assert env.CHAINSCALE_TX_RATE == 9


class TestLoggingFromEnv:
    """Test applying logging options to the process-wide config."""

    def test_configure_logging(self):
        config = LoggingConfig()
        env = Env(
            CHAINSCALE_LOG_LEVEL="debug",
            CHAINSCALE_LOG_OUTPUT="stdout",
        )

        try:
            env.configure_logging()

            assert config.level == LogLevel.DEBUG
            assert config.output == StreamType.STDOUT
            assert config.enabled("runner", LogLevel.DEBUG)
            assert not config.enabled("runner", LogLevel.TRACE)

        finally:
            config.update(log_level="error", log_output="stderr")

    def test_disabled_logger(self):
        config = LoggingConfig()

        config.disable("disabled-in-test")

        assert not config.enabled("disabled-in-test", LogLevel.FATAL)
        assert config.enabled("runner", LogLevel.FATAL)
