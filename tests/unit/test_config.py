"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from task_flow.config import DEFAULT_TIMEOUT_MS, FlowSettings, normalize_level


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("TASK_FLOW_TIMEOUT_MS", raising=False)


def test_settings_defaults(flow_settings: FlowSettings) -> None:
    """Test default values without environment or .env."""
    assert flow_settings.log_level == "debug"
    assert flow_settings.default_timeout_ms == DEFAULT_TIMEOUT_MS


def test_settings_loads_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "LOG_LEVEL=INFO",
                "TASK_FLOW_TIMEOUT_MS=2500",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = FlowSettings()

    assert settings.log_level == "info"
    assert settings.default_timeout_ms == 2500


def test_environment_overrides_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("LOG_LEVEL=info\n", encoding="utf-8")
    monkeypatch.setenv("LOG_LEVEL", "error")

    assert FlowSettings().log_level == "error"


def test_unknown_log_level_falls_back_to_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    assert FlowSettings(_env_file=None).log_level == "debug"


def test_non_positive_timeout_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("TASK_FLOW_TIMEOUT_MS", "0")

    with pytest.raises(ValidationError):
        FlowSettings(_env_file=None)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("debug", "debug"),
        (" WARN ", "warn"),
        ("warning", "warn"),
        ("Error", "error"),
        ("verbose", "debug"),
        (None, "debug"),
    ],
)
def test_normalize_level(raw: object, expected: str) -> None:
    assert normalize_level(raw) == expected
