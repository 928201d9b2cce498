"""Pure dataclasses for the MAGI deliberation pipeline. No logic, no deps."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

Language = Literal["en", "ja", "ko"]
LanguageMode = Literal["en", "ja", "ko", "auto"]

SUPPORTED_LANGUAGES: tuple[Language, ...] = ("en", "ja", "ko")

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
}


class Verdict(str, Enum):
    APPROVE = "APPROVE"
    DENY = "DENY"
    CONDITIONAL = "CONDITIONAL"
    REFUSE = "REFUSE"


class ConsensusOutcome(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"
    CONDITIONAL = "conditional"
    NO_CONSENSUS = "noConsensus"


@dataclass(frozen=True)
class PersonaConfig:
    name: str               # "MELCHIOR-1", "BALTHASAR-2", "CASPER-3"
    model: str
    fallback_models: tuple[str, ...]
    emergency_model: str
    temperature: float
    system_prompt: str

    @property
    def models(self) -> list[str]:
        """Full chain: primary, fallbacks, emergency."""
        return [self.model, *self.fallback_models, self.emergency_model]


@dataclass
class RateLimitSnapshot:
    """Header-derived quota state. Times are epoch milliseconds."""
    rpd_limit: int = 0
    rpd_remaining: int = 0
    rpd_reset_at: float = 0
    tpm_limit: int = 0
    tpm_remaining: int = 0
    tpm_reset_at: float = 0
    updated_at: float = 0


@dataclass
class TokenWindow:
    tokens: int
    window_start: float


@dataclass(frozen=True)
class LoadInfo:
    """Per-dimension usage percent, -1 when unmeasured."""
    tpm: float = -1
    rpm: float = -1
    rpd: float = -1
    tpd: float = -1

    def dimensions(self) -> tuple[float, float, float, float]:
        return (self.tpm, self.rpm, self.rpd, self.tpd)


@dataclass(frozen=True)
class PersonaResponse:
    persona: str
    content: str
    model: str
    latency_sec: float
    verdict: Verdict = Verdict.REFUSE  # placeholder until classified
    error: str | None = None


@dataclass(frozen=True)
class Deliberation:
    question: str
    approval_condition: str
    search_context: str | None
    search_failed: bool
    image_context: str | None
    file_context: str | None
    user_context: str | None
    language: Language
    melchior: PersonaResponse
    balthasar: PersonaResponse
    casper: PersonaResponse

    @property
    def responses(self) -> list[PersonaResponse]:
        return [self.melchior, self.balthasar, self.casper]


@dataclass
class ExtractionResult:
    condition: str | None
    detected_language: Language | None


@dataclass
class SearchResult:
    context: str | None
    failed: bool


@dataclass
class UserContext:
    summary: str
    updated_at: float = 0
