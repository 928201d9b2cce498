"""Deliberation orchestration: ordering, parallel persona calls, verdicts."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace

from config.config_loader import AppConfig
from magi.consensus import deliberation_outcome
from magi.context import compress_context
from magi.extraction import extract_condition
from magi.i18n import Translator, detect_language
from magi.models import Deliberation, Language, LanguageMode, PersonaConfig, PersonaResponse, Verdict
from magi.persona import PersonaInput, query_persona
from magi.personas import get_persona_configs
from magi.providers.base import ChatProvider
from magi.ratelimits import RateLimitTracker
from magi.search import fetch_search_context
from magi.storage import Store, get_user_context, set_user_context
from magi.verdict import classify_verdict
from magi.vision import describe_image

logger = logging.getLogger(__name__)


class DeliberationFailedError(Exception):
    """All three personas failed; the caller should report a system error."""

    def __init__(self, deliberation: Deliberation, message: str) -> None:
        self.deliberation = deliberation
        super().__init__(message)


class MagiEngine:
    """Runs deliberations against one provider, tracker and configuration."""

    def __init__(
        self,
        config: AppConfig,
        provider: ChatProvider,
        tracker: RateLimitTracker,
        translator: Translator | None = None,
        store: Store | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.tracker = tracker
        self.translator = translator or Translator()
        self.store = store

    @property
    def data_models(self) -> list[str]:
        return self.config.pipeline.data_models

    async def deliberate(
        self,
        question: str,
        language: LanguageMode = "auto",
        image: bytes | None = None,
        user_context: str | None = None,
        file_context: str | None = None,
    ) -> Deliberation:
        """One full pass: image -> condition -> search -> personas -> verdicts.

        Never raises for model failures; failed personas carry ``error`` and
        vote REFUSE.
        """
        start = time.monotonic()
        pipeline = self.config.pipeline
        logger.info("Starting deliberation: %r (language=%s)", question[:80], language)

        # Image description feeds extraction, so it runs first
        prelim_lang: Language = language if language != "auto" else detect_language(question)
        image_context = None
        if image:
            image_context = await describe_image(
                self.provider, pipeline.data_model, image, prelim_lang, pipeline.image_description_limit,
            )

        extraction = await extract_condition(
            self.provider, self.tracker, self.data_models, question, language,
            image_context=image_context,
            file_context=file_context,
            condition_limit=pipeline.condition_limit,
        )
        approval_condition = extraction.condition or ""

        # Explicit choice > model-detected > local script count
        lang: Language = language if language != "auto" else (extraction.detected_language or prelim_lang)
        logger.info("Condition extracted: %r (language=%s)", approval_condition, lang)

        search = await fetch_search_context(
            self.provider, self.tracker, pipeline.search_models, question, approval_condition, lang,
            image_context=image_context,
            question_limit=pipeline.search_question_limit,
        )

        shared = PersonaInput(
            question=question,
            approval_condition=approval_condition,
            language=lang,
            search_context=search.context,
            search_failed=search.failed,
            image_context=image_context,
            file_context=file_context,
            user_context=user_context,
        )
        configs = get_persona_configs(self.config, lang)

        # No short-circuit: one persona failing must not cancel the others
        results = await asyncio.gather(
            *(
                query_persona(self.provider, self.tracker, self.translator, cfg, shared, pipeline.char_limit)
                for cfg in configs
            ),
            return_exceptions=True,
        )
        responses = [self._unwrap(result, cfg, lang) for result, cfg in zip(results, configs)]

        verdicts = await asyncio.gather(*(self._classify(r, approval_condition) for r in responses))
        responses = [replace(r, verdict=v) for r, v in zip(responses, verdicts)]

        logger.info(
            "Deliberation complete in %.2fs: verdicts=%s models=%s",
            time.monotonic() - start,
            [r.verdict.value for r in responses],
            [r.model for r in responses],
        )

        melchior, balthasar, casper = responses
        return Deliberation(
            question=question,
            approval_condition=approval_condition,
            search_context=search.context,
            search_failed=search.failed,
            image_context=image_context,
            file_context=file_context,
            user_context=user_context,
            language=lang,
            melchior=melchior,
            balthasar=balthasar,
            casper=casper,
        )

    def _unwrap(
        self,
        result: PersonaResponse | BaseException,
        config: PersonaConfig,
        language: Language,
    ) -> PersonaResponse:
        if isinstance(result, PersonaResponse):
            return result
        logger.error("%s crashed: %s", config.name, result)
        return PersonaResponse(
            persona=config.name,
            content=self.translator.translate(language, "coreMalfunction"),
            model=config.model,
            latency_sec=0.0,
            error=str(result) or type(result).__name__,
        )

    async def _classify(self, response: PersonaResponse, approval_condition: str) -> Verdict:
        # Malfunction text is not worth a classifier call
        if response.error:
            return Verdict.REFUSE
        return await classify_verdict(
            self.provider, self.tracker, self.data_models, response.content, approval_condition,
        )

    async def compress(self, previous: str | None, question: str, deliberation: Deliberation) -> str | None:
        return await compress_context(
            self.provider, self.tracker, self.data_models, previous, question, deliberation,
            limit=self.config.pipeline.context_limit,
        )

    async def run_query(
        self,
        question: str,
        user_id: str | None = None,
        language: LanguageMode = "auto",
        image: bytes | None = None,
        file_context: str | None = None,
        on_reply: Callable[[Deliberation], Awaitable[None]] | None = None,
    ) -> Deliberation:
        """Full request cycle: load memory, deliberate, reply, then fold into memory.

        Raises:
            DeliberationFailedError: If all three personas failed.
        """
        previous = None
        if self.store is not None and user_id is not None:
            previous = await get_user_context(self.store, user_id)
            if previous:
                logger.info("Context loaded for %s: %d chars", user_id, len(previous.summary))

        deliberation = await self.deliberate(
            question,
            language=language,
            image=image,
            user_context=previous.summary if previous else None,
            file_context=file_context,
        )

        if all(r.error for r in deliberation.responses):
            raise DeliberationFailedError(
                deliberation, self.translator.translate(deliberation.language, "error"),
            )

        logger.info("Outcome: %s", deliberation_outcome(deliberation).value)
        if on_reply is not None:
            await on_reply(deliberation)

        # Memory is updated only after the reply has gone out
        if self.store is not None and user_id is not None:
            summary = await self.compress(previous.summary if previous else None, question, deliberation)
            if summary:
                try:
                    await set_user_context(self.store, user_id, summary)
                    logger.info("Context saved for %s: %d chars", user_id, len(summary))
                except Exception as exc:
                    logger.warning("Context save failed for %s: %s", user_id, exc)

        return deliberation
