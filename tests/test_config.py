"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AppConfig, ModelLimits, load_config


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "groq": {
            "api_key_env": "TEST_GROQ_KEY",
            "base_url": "https://example.invalid/openai/v1",
        },
        "pipeline": {
            "data_model": "scout",
            "emergency_model": "instant",
            "search_models": ["compound", "compound-mini"],
        },
        "limits": {
            "scout": {"rpm": 30, "tpd": 500000},
            "compound": {"rpm": 30, "tpd": None},
        },
        "common_directives": "Respond ONLY in {language_name}. {purity_rule} Max {char_limit}.",
        "purity_rules": {"en": "Latin only."},
        "personas": {
            "MELCHIOR-1": {"model": "qwen", "fallback_models": ["maverick"], "temperature": 0.1, "prompt": "You are MELCHIOR-1."},
            "BALTHASAR-2": {"model": "llama", "temperature": 0.3, "prompt": "You are BALTHASAR-2."},
            "CASPER-3": {"model": "kimi", "fallback_models": ["kimi-0905"], "temperature": 0.5, "prompt": "You are CASPER-3."},
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_pipeline_defaults(minimal_settings):
    pipeline = load_config(minimal_settings).pipeline
    assert pipeline.char_limit == 240
    assert pipeline.condition_limit == 120
    assert pipeline.context_limit == 800
    assert pipeline.skip_threshold == 95.0
    assert pipeline.data_models == ["scout", "instant"]
    assert pipeline.search_models == ["compound", "compound-mini"]


def test_load_config_groq_timeout_default(minimal_settings):
    assert load_config(minimal_settings).groq.timeout_sec == 30.0


def test_load_config_limits(minimal_settings):
    limits = load_config(minimal_settings).limits
    assert limits["scout"] == ModelLimits(rpm=30, tpd=500000)
    assert limits["compound"].tpd is None


def test_load_config_personas(minimal_settings):
    personas = load_config(minimal_settings).personas
    assert set(personas) == {"MELCHIOR-1", "BALTHASAR-2", "CASPER-3"}
    assert personas["MELCHIOR-1"].fallback_models == ["maverick"]
    assert personas["BALTHASAR-2"].fallback_models == []
    assert personas["CASPER-3"].temperature == 0.5


def test_load_config_api_key_available(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_GROQ_KEY", "gsk-test")
    assert load_config(minimal_settings).api_key_available is True


def test_load_config_no_api_key(minimal_settings, monkeypatch):
    monkeypatch.delenv("TEST_GROQ_KEY", raising=False)
    assert load_config(minimal_settings).api_key_available is False


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_storage_path_default(minimal_settings, monkeypatch):
    monkeypatch.delenv("DATA_DIR", raising=False)
    assert load_config(minimal_settings).storage.path == Path("./data/magi.json")


def test_data_dir_overrides_storage_dir(minimal_settings, monkeypatch, tmp_path):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "volume"))
    assert load_config(minimal_settings).storage.path == tmp_path / "volume" / "magi.json"


def test_bundled_settings_cover_every_chain_model():
    config = load_config()
    models = {*config.pipeline.data_models, *config.pipeline.search_models}
    for spec in config.personas.values():
        models.update([spec.model, *spec.fallback_models])
    assert models <= set(config.limits)
