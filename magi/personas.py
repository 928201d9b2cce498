"""Build the three persona configs for a response language."""

from config.config_loader import AppConfig, PersonaSpec
from magi.models import LANGUAGE_NAMES, Language, PersonaConfig

MELCHIOR = "MELCHIOR-1"
BALTHASAR = "BALTHASAR-2"
CASPER = "CASPER-3"
PERSONA_ORDER = (MELCHIOR, BALTHASAR, CASPER)


def build_system_prompt(config: AppConfig, spec: PersonaSpec, language: Language) -> str:
    common = config.common_directives.format(
        language_name=LANGUAGE_NAMES[language],
        purity_rule=config.purity_rules.get(language, ""),
        char_limit=config.pipeline.char_limit,
    )
    return f"{spec.prompt.rstrip()}\n\n{common.strip()}"


def get_persona_configs(config: AppConfig, language: Language) -> list[PersonaConfig]:
    """Persona configs in deliberation order (MELCHIOR, BALTHASAR, CASPER).

    Raises:
        KeyError: If settings.yaml is missing one of the three personas.
    """
    configs = []
    for name in PERSONA_ORDER:
        spec = config.personas[name]
        configs.append(
            PersonaConfig(
                name=name,
                model=spec.model,
                fallback_models=tuple(spec.fallback_models),
                emergency_model=config.pipeline.emergency_model,
                temperature=spec.temperature,
                system_prompt=build_system_prompt(config, spec, language),
            )
        )
    return configs
