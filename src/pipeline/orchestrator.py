"""Orchestrator: wires usage gate, providers, parser, matcher, and fallback.

Data flow per call:
  1. Validate input, capture one catalog snapshot and its excerpt
  2. Build the prompt from that excerpt (plus optional user context)
  3. For each configured provider (primary, then secondary):
       gate check → record call → complete
     Transport failure moves on to the next provider.
  4. Parse → match against the same excerpt
  5. Any dead end (no provider, gate closed, all providers failed,
     unparseable, zero matches, budget expired) → deterministic fallback

AI-path failures never reach the caller; only bad input and an unreachable
catalog do.

Course outlines share step 3 and the gate but have no fallback; their dead
ends come back as an unsuccessful ``OutlineResult``.
"""

import asyncio
import logging

from src.catalog.base import CatalogLookup, UserProfileLookup
from src.core.config import ProviderConfig, RecommenderConfig, Settings
from src.core.errors import InvalidQueryError, UserNotFoundError
from src.core.schemas import (
    CourseOutline,
    OutlineResult,
    Provenance,
    ProviderFailure,
    ProviderResponse,
    ProviderRole,
    RecommendationRecord,
    RecommendationResult,
    UserProfile,
)
from src.pipeline.fallback import rank_by_keywords, rank_by_profile, search_terms
from src.pipeline.matcher import CatalogExcerpt, match_hints
from src.pipeline.parser import (
    ParsedPositions,
    ParsedStructured,
    Unparseable,
    parse_course_outline,
    parse_recommendations,
)
from src.pipeline.prompts import (
    CHAT_SYSTEM_PROMPT,
    OUTLINE_SYSTEM_PROMPT,
    PROFILE_SYSTEM_PROMPT,
    build_chat_prompt,
    build_outline_prompt,
    build_profile_prompt,
)
from src.pipeline.usage_tracker import UsageTracker
from src.providers import LLMProvider, get_provider

logger = logging.getLogger(__name__)


class AIOutcome:
    """Result of the AI phase: records on success, a fallback reason otherwise."""

    def __init__(
        self,
        records: list[RecommendationRecord],
        provenance: Provenance | None = None,
        model: str | None = None,
        fallback_reason: str | None = None,
    ) -> None:
        self.records = records
        self.provenance = provenance
        self.model = model
        self.fallback_reason = fallback_reason

    @classmethod
    def failed(cls, reason: str) -> "AIOutcome":
        return cls(records=[], fallback_reason=reason)


class RecommendationOrchestrator:
    """Single entry point for AI-assisted course recommendations.

    The UsageTracker is the only state shared across calls; everything else
    is local to one invocation.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        usage: UsageTracker,
        *,
        primary: LLMProvider | None = None,
        secondary: LLMProvider | None = None,
        profiles: UserProfileLookup | None = None,
        config: RecommenderConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._usage = usage
        self._primary = primary
        self._secondary = secondary
        self._profiles = profiles
        self._config = config or RecommenderConfig()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        catalog: CatalogLookup,
        *,
        profiles: UserProfileLookup | None = None,
        usage: UsageTracker | None = None,
    ) -> "RecommendationOrchestrator":
        """Build providers from config through the registry."""
        rc = settings.recommender
        return cls(
            catalog,
            usage or UsageTracker(settings.usage),
            primary=_build_provider(rc.primary),
            secondary=_build_provider(rc.secondary),
            profiles=profiles,
            config=rc,
        )

    @property
    def usage(self) -> UsageTracker:
        return self._usage

    def provider_slots(self) -> list[tuple[ProviderRole, LLMProvider]]:
        """All provider slots that are filled, configured or not."""
        slots: list[tuple[ProviderRole, LLMProvider]] = []
        if self._primary is not None:
            slots.append(("primary", self._primary))
        if self._secondary is not None:
            slots.append(("secondary", self._secondary))
        return slots

    def configured_providers(self) -> list[tuple[ProviderRole, LLMProvider]]:
        """Provider slots whose credentials are present, in attempt order."""
        configured = []
        for role, provider in self.provider_slots():
            if provider.is_configured():
                configured.append((role, provider))
            else:
                logger.debug(
                    "%s provider '%s' has no %s - skipping",
                    role, provider.provider_id, provider.env_var,
                )
        return configured

    async def get_chat_recommendations(
        self,
        query: str,
        requester_id: str | None = None,
        limit: int | None = None,
    ) -> RecommendationResult:
        """Recommend courses for a natural-language query.

        Raises:
            InvalidQueryError: Empty or over-long query, or limit < 1.
            CatalogUnavailableError: The catalog collaborator failed.
        """
        query, limit = self._validate(query, limit)

        courses = await self._catalog.list_published(self._config.catalog_fetch_limit)
        excerpt = CatalogExcerpt(courses[: self._config.excerpt_size])

        if not excerpt:
            logger.warning("No published courses to show the provider - using fallback")
            outcome = AIOutcome.failed("empty-catalog")
        else:
            profile = await self._lookup_profile(requester_id)
            outcome = await self._run_ai_path(
                system=CHAT_SYSTEM_PROMPT,
                prompt=build_chat_prompt(query, excerpt, profile),
                excerpt=excerpt,
                limit=limit,
                default_reason=f'Recommended based on your query: "{query}"',
            )

        if outcome.records and outcome.provenance is not None:
            logger.info(
                "Generated %d recommendations via %s",
                len(outcome.records), outcome.provenance.value,
            )
            return self._result(query, outcome.records, outcome.provenance, outcome.model)

        hits = await self._catalog.search_published(search_terms(query))
        records = rank_by_keywords(query, hits, limit)
        logger.info(
            "Keyword fallback (%s): %d recommendations for '%s'",
            outcome.fallback_reason, len(records), query,
        )
        return self._result(
            query,
            records,
            Provenance.KEYWORD_FALLBACK,
            fallback_reason=outcome.fallback_reason,
        )

    async def get_personalized_recommendations(
        self,
        user_id: str,
        limit: int = 10,
    ) -> RecommendationResult:
        """Recommend unenrolled courses from a user's profile and history.

        Raises:
            InvalidQueryError: limit < 1.
            UserNotFoundError: No profile lookup configured, or unknown user.
            CatalogUnavailableError: The catalog collaborator failed.
        """
        if limit < 1:
            msg = f"limit must be at least 1, got {limit}"
            raise InvalidQueryError(msg)
        limit = min(limit, self._config.max_limit)

        if self._profiles is None:
            msg = "Personalized recommendations need a user profile lookup"
            raise UserNotFoundError(msg)
        profile = await self._profiles.get_profile(user_id)
        if profile is None:
            msg = f"User not found: {user_id}"
            raise UserNotFoundError(msg)

        courses = await self._catalog.list_published(
            self._config.catalog_fetch_limit,
            exclude_ids=profile.enrolled_course_ids,
        )
        excerpt = CatalogExcerpt(courses[: self._config.excerpt_size])
        label = f"user:{user_id}"

        if not excerpt:
            outcome = AIOutcome.failed("empty-catalog")
        else:
            outcome = await self._run_ai_path(
                system=PROFILE_SYSTEM_PROMPT,
                prompt=build_profile_prompt(profile, excerpt, limit),
                excerpt=excerpt,
                limit=limit,
                default_reason="AI-powered recommendation based on your profile",
            )

        if outcome.records and outcome.provenance is not None:
            return self._result(label, outcome.records, outcome.provenance, outcome.model)

        records = rank_by_profile(profile, courses, limit)
        logger.info(
            "Profile fallback (%s): %d recommendations for '%s'",
            outcome.fallback_reason, len(records), user_id,
        )
        return self._result(
            label,
            records,
            Provenance.PROFILE_FALLBACK,
            fallback_reason=outcome.fallback_reason,
        )

    async def generate_course_outline(
        self,
        title: str,
        description: str = "",
    ) -> OutlineResult:
        """Draft objectives, prerequisites, lessons, and outcomes for a new course.

        Uses the same providers and usage gate as recommendations. There is no
        deterministic fallback: every AI dead end comes back as an unsuccessful
        result, with the provider's text attached when it could not be parsed.

        Raises:
            InvalidQueryError: Empty or over-long title.
        """
        if not isinstance(title, str) or not title.strip():
            msg = "Please provide a course title to outline"
            raise InvalidQueryError(msg)
        title = title.strip()
        if len(title) > self._config.max_query_length:
            msg = (
                "Course title is too long. Please keep it under "
                f"{self._config.max_query_length} characters."
            )
            raise InvalidQueryError(msg)

        attempts = self.configured_providers()
        if not attempts:
            logger.warning("No AI provider configured - cannot outline '%s'", title)
            return self._outline_failure(title, "no-provider")

        try:
            response = await asyncio.wait_for(
                self._first_response(
                    attempts,
                    OUTLINE_SYSTEM_PROMPT,
                    build_outline_prompt(title, description.strip()),
                    max_tokens=self._config.outline_max_tokens,
                    temperature=self._config.outline_temperature,
                ),
                timeout=self._config.ai_budget_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Outline for '%s' exceeded %.1fs budget", title, self._config.ai_budget_seconds,
            )
            return self._outline_failure(title, "ai-timeout")

        if isinstance(response, str):
            return self._outline_failure(title, response)

        provenance = Provenance.for_role(response.role)
        parsed = parse_course_outline(response.text)
        match parsed:
            case Unparseable():
                logger.warning(
                    "Unparseable outline from '%s': %s", response.provider_id, parsed.reason,
                )
                return self._outline_failure(
                    title,
                    "unparseable",
                    raw_response=response.text,
                    provenance=provenance,
                    model=response.model,
                )
            case CourseOutline():
                logger.info(
                    "Outlined '%s': %d lessons via %s",
                    title, len(parsed.lessons), provenance.value,
                )
                return OutlineResult(
                    title=title,
                    success=True,
                    outline=parsed,
                    provenance=provenance,
                    model=response.model,
                    usage=self._usage.stats(),
                )

    def _outline_failure(
        self,
        title: str,
        reason: str,
        *,
        raw_response: str | None = None,
        provenance: Provenance | None = None,
        model: str | None = None,
    ) -> OutlineResult:
        return OutlineResult(
            title=title,
            success=False,
            error=reason,
            raw_response=raw_response,
            provenance=provenance,
            model=model,
            usage=self._usage.stats(),
        )

    async def _run_ai_path(
        self,
        *,
        system: str,
        prompt: str,
        excerpt: CatalogExcerpt,
        limit: int,
        default_reason: str,
    ) -> AIOutcome:
        attempts = self.configured_providers()
        if not attempts:
            logger.warning("No AI provider configured - using fallback")
            return AIOutcome.failed("no-provider")

        try:
            return await asyncio.wait_for(
                self._call_providers(attempts, system, prompt, excerpt, limit, default_reason),
                timeout=self._config.ai_budget_seconds,
            )
        except TimeoutError:
            logger.warning(
                "AI phase exceeded %.1fs budget - abandoning in-flight call",
                self._config.ai_budget_seconds,
            )
            return AIOutcome.failed("ai-timeout")

    async def _call_providers(
        self,
        attempts: list[tuple[ProviderRole, LLMProvider]],
        system: str,
        prompt: str,
        excerpt: CatalogExcerpt,
        limit: int,
        default_reason: str,
    ) -> AIOutcome:
        response = await self._first_response(
            attempts,
            system,
            prompt,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        if isinstance(response, str):
            return AIOutcome.failed(response)
        return self._resolve(response, excerpt, limit, default_reason)

    async def _first_response(
        self,
        attempts: list[tuple[ProviderRole, LLMProvider]],
        system: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> ProviderResponse | str:
        """First usable completion in attempt order, or the reason there was none."""
        for role, provider in attempts:
            # Gate before every dispatch; a closed gate never reaches the network.
            if not self._usage.can_proceed():
                return "usage-limit"
            self._usage.record_call()

            result = await provider.complete(
                prompt,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
                role=role,
            )
            match result:
                case ProviderFailure():
                    logger.warning(
                        "%s provider '%s' unavailable (%s)",
                        result.role, result.provider_id, result.reason,
                    )
                    continue
                case ProviderResponse():
                    return result

        return "provider-failure"

    def _resolve(
        self,
        response: ProviderResponse,
        excerpt: CatalogExcerpt,
        limit: int,
        default_reason: str,
    ) -> AIOutcome:
        logger.info("%s response: %s", response.provider_id, response.text[:200])
        parsed = parse_recommendations(response.text, excerpt_size=len(excerpt), limit=limit)
        provenance = Provenance.for_role(response.role)

        match parsed:
            case Unparseable():
                logger.warning(
                    "Unparseable response from '%s': %s", response.provider_id, parsed.reason,
                )
                return AIOutcome.failed("unparseable")
            case ParsedStructured() | ParsedPositions():
                records = match_hints(
                    parsed, excerpt, provenance=provenance, default_reason=default_reason,
                )

        if not records:
            logger.warning(
                "No hints from '%s' matched the catalog - using fallback",
                response.provider_id,
            )
            return AIOutcome.failed("no-match")

        return AIOutcome(records=records[:limit], provenance=provenance, model=response.model)

    async def _lookup_profile(self, requester_id: str | None) -> UserProfile | None:
        if requester_id is None or self._profiles is None:
            return None
        try:
            return await self._profiles.get_profile(requester_id)
        except Exception:
            logger.warning(
                "Profile lookup failed for '%s' - continuing without user context",
                requester_id,
                exc_info=True,
            )
            return None

    def _validate(self, query: str, limit: int | None) -> tuple[str, int]:
        if not isinstance(query, str) or not query.strip():
            msg = "Please provide a valid query for course recommendations"
            raise InvalidQueryError(msg)
        query = query.strip()
        if len(query) > self._config.max_query_length:
            msg = (
                "Query is too long. Please keep it under "
                f"{self._config.max_query_length} characters."
            )
            raise InvalidQueryError(msg)

        if limit is None:
            limit = self._config.default_limit
        if limit < 1:
            msg = f"limit must be at least 1, got {limit}"
            raise InvalidQueryError(msg)
        return query, min(limit, self._config.max_limit)

    def _result(
        self,
        query: str,
        records: list[RecommendationRecord],
        provenance: Provenance,
        model: str | None = None,
        fallback_reason: str | None = None,
    ) -> RecommendationResult:
        return RecommendationResult(
            query=query,
            courses=records,
            ai_generated=provenance in (Provenance.PRIMARY_AI, Provenance.SECONDARY_AI),
            provenance=provenance,
            usage=self._usage.stats(),
            model=model,
            fallback_reason=fallback_reason,
        )


def _build_provider(config: ProviderConfig | None) -> LLMProvider | None:
    if config is None:
        return None
    return get_provider(config.name, model=config.model, timeout=config.timeout_seconds)
