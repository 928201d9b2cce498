"""Load settings.yaml into typed dataclasses. Checks the API key at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class GroqConfig:
    api_key_env: str
    base_url: str
    timeout_sec: float


@dataclass
class PipelineConfig:
    data_model: str
    emergency_model: str
    search_models: list[str]
    char_limit: int = 240
    condition_limit: int = 120
    context_limit: int = 800
    image_description_limit: int = 200
    search_question_limit: int = 500
    skip_threshold: float = 95.0

    @property
    def data_models(self) -> list[str]:
        """Chain used by extraction, classification and compression."""
        return [self.data_model, self.emergency_model]


@dataclass
class ModelLimits:
    rpm: int
    tpd: int | None  # None = unlimited


@dataclass
class PersonaSpec:
    name: str
    model: str
    fallback_models: list[str]
    temperature: float
    prompt: str


@dataclass
class StorageConfig:
    path: Path


@dataclass
class AppConfig:
    groq: GroqConfig
    pipeline: PipelineConfig
    storage: StorageConfig
    limits: dict[str, ModelLimits]
    personas: dict[str, PersonaSpec]
    common_directives: str
    purity_rules: dict[str, str] = field(default_factory=dict)
    api_key_available: bool = False


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs a warning for a missing API key but does not raise; callers check
    api_key_available.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    groq_raw = raw["groq"]
    groq = GroqConfig(
        api_key_env=str(groq_raw["api_key_env"]),
        base_url=str(groq_raw["base_url"]),
        timeout_sec=float(groq_raw.get("timeout_sec", 30)),
    )

    pipeline_raw = raw["pipeline"]
    pipeline = PipelineConfig(
        data_model=str(pipeline_raw["data_model"]),
        emergency_model=str(pipeline_raw["emergency_model"]),
        search_models=[str(m) for m in pipeline_raw["search_models"]],
        char_limit=int(pipeline_raw.get("char_limit", 240)),
        condition_limit=int(pipeline_raw.get("condition_limit", 120)),
        context_limit=int(pipeline_raw.get("context_limit", 800)),
        image_description_limit=int(pipeline_raw.get("image_description_limit", 200)),
        search_question_limit=int(pipeline_raw.get("search_question_limit", 500)),
        skip_threshold=float(pipeline_raw.get("skip_threshold", 95)),
    )

    # DATA_DIR points at a mounted volume in container deployments
    storage_raw = raw.get("storage", {})
    storage_path = Path(storage_raw.get("path", "./data/magi.json"))
    data_dir = os.environ.get("DATA_DIR", "").strip()
    if data_dir:
        storage_path = Path(data_dir) / storage_path.name
    storage = StorageConfig(path=storage_path)

    limits: dict[str, ModelLimits] = {}
    for model_id, limit_raw in raw.get("limits", {}).items():
        tpd = limit_raw.get("tpd")
        limits[model_id] = ModelLimits(
            rpm=int(limit_raw["rpm"]),
            tpd=int(tpd) if tpd is not None else None,
        )

    personas: dict[str, PersonaSpec] = {}
    for name, persona_raw in raw["personas"].items():
        personas[name] = PersonaSpec(
            name=name,
            model=str(persona_raw["model"]),
            fallback_models=[str(m) for m in persona_raw.get("fallback_models", [])],
            temperature=float(persona_raw["temperature"]),
            prompt=str(persona_raw["prompt"]),
        )

    api_key = os.environ.get(groq.api_key_env, "").strip()
    if api_key:
        logger.info("Groq API key found in %s", groq.api_key_env)
    else:
        logger.warning("No API key: set %s in .env", groq.api_key_env)

    return AppConfig(
        groq=groq,
        pipeline=pipeline,
        storage=storage,
        limits=limits,
        personas=personas,
        common_directives=str(raw.get("common_directives", "")),
        purity_rules={k: str(v) for k, v in raw.get("purity_rules", {}).items()},
        api_key_available=bool(api_key),
    )
