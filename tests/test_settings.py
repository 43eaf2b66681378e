from pathlib import Path

import pytest

from envelope_categorizer.core import settings
from envelope_categorizer.logger import get_logging_config


def test_read_config_file(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "# classifier settings\n"
        "ACCOUNT_MODEL_MIN_SAMPLES: 75  # larger accounts only\n"
        'LOG_LEVEL: "debug"\n'
        "PREDICTION_MIN_PROBABILITY: '0.1'\n"
        "EMPTY:\n"
        "not a setting\n",
        encoding="utf-8",
    )

    assert settings.read_config_file(str(config)) == {
        "ACCOUNT_MODEL_MIN_SAMPLES": "75",
        "LOG_LEVEL": "debug",
        "PREDICTION_MIN_PROBABILITY": "0.1",
    }


def test_read_missing_config_file(tmp_path: Path) -> None:
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}
    assert settings.read_config_file(None) == {}


def test_get_env_int(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACCOUNT_MODEL_MIN_SAMPLES", "80")
    assert settings.get_env_int("ACCOUNT_MODEL_MIN_SAMPLES", 50, min_value=1) == 80

    monkeypatch.setenv("ACCOUNT_MODEL_MIN_SAMPLES", "lots")
    assert settings.get_env_int("ACCOUNT_MODEL_MIN_SAMPLES", 50, min_value=1) == 50

    monkeypatch.setenv("ACCOUNT_MODEL_MIN_SAMPLES", "0")
    assert settings.get_env_int("ACCOUNT_MODEL_MIN_SAMPLES", 50, min_value=1) == 50

    monkeypatch.delenv("ACCOUNT_MODEL_MIN_SAMPLES")
    assert settings.get_env_int("ACCOUNT_MODEL_MIN_SAMPLES", 50, min_value=1) == 50


def test_get_env_float(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PREDICTION_MIN_PROBABILITY", "0.2")
    assert settings.get_env_float("PREDICTION_MIN_PROBABILITY", 0.05, 0.0, 1.0) == 0.2

    monkeypatch.setenv("PREDICTION_MIN_PROBABILITY", "1.5")
    assert settings.get_env_float("PREDICTION_MIN_PROBABILITY", 0.05, 0.0, 1.0) == 0.05

    monkeypatch.setenv("PREDICTION_MIN_PROBABILITY", "high")
    assert settings.get_env_float("PREDICTION_MIN_PROBABILITY", 0.05, 0.0, 1.0) == 0.05


def test_load_environment_reads_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "config.yaml").write_text("RETRAIN_INTERVAL_SECONDS: 3600\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("RETRAIN_INTERVAL_SECONDS", raising=False)

    settings.load_environment()

    assert settings.get_config_path() == str(tmp_path / "config.yaml")
    assert settings.get_env_int("RETRAIN_INTERVAL_SECONDS", 60) == 3600
    monkeypatch.delenv("RETRAIN_INTERVAL_SECONDS")


def test_logging_config_adds_file_handler(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = get_logging_config()

    assert config["loggers"][""]["level"] == "DEBUG"
    assert config["loggers"][""]["handlers"] == ["console", "file"]
    assert config["handlers"]["file"]["filename"] == str(tmp_path / "logs" / "app.log")
    assert (tmp_path / "logs").is_dir()
