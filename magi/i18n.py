"""User-facing strings and local language detection."""

import logging
import re
from pathlib import Path

import yaml

from magi.models import SUPPORTED_LANGUAGES, ConsensusOutcome, Language, Verdict

logger = logging.getLogger(__name__)

_LOCALES_DIR = Path(__file__).parent / "locales"

_HANGUL_RE = re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")
_KANA_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")
_LATIN_RE = re.compile(r"[a-zA-Z]")

VERDICT_KEYS: dict[Verdict, str] = {
    Verdict.APPROVE: "verdictApprove",
    Verdict.DENY: "verdictDeny",
    Verdict.CONDITIONAL: "verdictConditional",
    Verdict.REFUSE: "verdictRefuse",
}

OUTCOME_KEYS: dict[ConsensusOutcome, str] = {
    ConsensusOutcome.APPROVED: "resultApproved",
    ConsensusOutcome.DENIED: "resultDenied",
    ConsensusOutcome.CONDITIONAL: "resultConditional",
    ConsensusOutcome.NO_CONSENSUS: "resultNoConsensus",
}


class Translator:
    """Looks up a key in the language bundle, then English, then returns the key."""

    def __init__(self, bundles: dict[str, dict[str, str]] | None = None) -> None:
        self.bundles = bundles if bundles is not None else load_bundles()

    def translate(self, language: str, key: str, **variables: object) -> str:
        text = self.bundles.get(language, {}).get(key)
        if text is None:
            text = self.bundles.get("en", {}).get(key, key)
        for name, value in variables.items():
            text = text.replace("{" + name + "}", str(value))
        return text

    def verdict(self, language: str, verdict: Verdict) -> str:
        return self.translate(language, VERDICT_KEYS[verdict])

    def outcome(self, language: str, outcome: ConsensusOutcome) -> str:
        return self.translate(language, OUTCOME_KEYS[outcome])


def load_bundles(locales_dir: Path = _LOCALES_DIR) -> dict[str, dict[str, str]]:
    bundles: dict[str, dict[str, str]] = {}
    for lang in SUPPORTED_LANGUAGES:
        path = locales_dir / f"{lang}.yaml"
        if not path.exists():
            logger.warning("Missing locale bundle: %s", path)
            continue
        with path.open("r", encoding="utf-8") as f:
            bundles[lang] = {k: str(v) for k, v in (yaml.safe_load(f) or {}).items()}
    return bundles


def detect_language(text: str) -> Language:
    """Pick the script with the most characters. Defaults to English."""
    korean = len(_HANGUL_RE.findall(text))
    japanese = len(_KANA_RE.findall(text))
    english = len(_LATIN_RE.findall(text))

    if korean + japanese + english == 0:
        return "en"
    if korean >= japanese and korean >= english:
        return "ko"
    if japanese >= korean and japanese >= english:
        return "ja"
    return "en"
