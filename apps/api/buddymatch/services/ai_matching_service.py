"""AI matching service - ranks buddy candidates for a newcomer.

Every available buddy (owned by an active user) is offered to the completion
provider in a single prompt; no pre-filtering happens here. The provider's
answer is advisory: suggestions naming buddies that were not offered are
dropped, scores are clamped to [0, 1], and results are cached per
(newcomer, profile snapshot).
"""

import logging
import math
import time
from uuid import UUID

import httpx
from sqlalchemy.orm import Session, joinedload

from buddymatch.core.async_utils import run_async
from buddymatch.core.config import settings
from buddymatch.db.enums import Role
from buddymatch.db.models import BuddyProfile, User
from buddymatch.schemas.ai_matching import (
    AISuggestion,
    AISuggestionResponse,
    BuddyProfileSummary,
    NewcomerProfile,
    RawSuggestion,
)
from buddymatch.services.ai_provider import AIProvider, AIProviderError, ChatMessage
from buddymatch.services.ai_response_validation import parse_json_object, validate_model_list
from buddymatch.services.ai_suggestion_cache import SuggestionCache, build_cache_key

logger = logging.getLogger(__name__)

NO_REASONING = "No reasoning provided"
NOT_SPECIFIED = "Not specified"

SYSTEM_PROMPT = (
    "You are an expert HR matching system that pairs newcomers with experienced "
    "buddies. Analyze the newcomer profile and available buddies to suggest the "
    "best matches with detailed reasoning."
)

BUDDY_LINE_FORMAT = "ID|Name|Location|Unit|TechStack|Interests|Experience|Languages"

RANKING_INSTRUCTIONS = """Suggest the best buddy matches for this newcomer from ALL buddies listed above. Weigh:
1. Technical compatibility (tech stack, department alignment)
2. Overlap of personal interests
3. Location proximity or timezone compatibility
4. Appropriate experience level
5. Shared languages

Rules:
- Use the buddy's name exactly as it appears in the list; never invent names.
- The buddyId of each suggestion must be the ID of the buddy described in its reasoning.

Each suggestion needs the buddy ID copied from the list, a match score from 0 to 1
(1 is a perfect match) and reasoning that explains the fit.

Reply with JSON in exactly this shape:
{
  "suggestions": [
    {
      "buddyId": "<id from the list>",
      "score": 0.85,
      "reasoning": "Why this buddy fits, using their exact name..."
    }
  ]
}"""


# =============================================================================
# Errors
# =============================================================================


class AIMatchingError(Exception):
    """Base exception for AI matching errors."""

    pass


class AIProviderNotConfiguredError(AIMatchingError):
    """No usable completion provider (disabled or missing key/url/model)."""

    pass


class NewcomerNotFoundError(AIMatchingError):
    pass


class IncompleteNewcomerProfileError(AIMatchingError):
    pass


class AISuggestionGenerationError(AIMatchingError):
    """Provider call failed or its answer could not be parsed."""

    pass


# =============================================================================
# Inputs
# =============================================================================


def is_enabled(provider: AIProvider) -> bool:
    """AI matching is on only when the feature flag is set and the provider is usable."""
    return settings.AI_MATCHING_ENABLED and provider.is_configured()


def load_newcomer_profile(db: Session, newcomer_id: UUID) -> NewcomerProfile:
    """Build the prompt snapshot for an active NEWCOMER; raises if missing or profile-less."""
    newcomer = (
        db.query(User)
        .options(joinedload(User.profile))
        .filter(
            User.id == newcomer_id,
            User.role == Role.NEWCOMER.value,
            User.is_active.is_(True),
        )
        .first()
    )
    if not newcomer:
        raise NewcomerNotFoundError("Newcomer not found")

    profile = newcomer.profile
    if not profile:
        raise IncompleteNewcomerProfileError(
            "Newcomer profile is incomplete. Please add more information before using AI matching."
        )

    return NewcomerProfile(
        first_name=newcomer.first_name,
        last_name=newcomer.last_name,
        department=profile.department or "",
        position=profile.position or "",
        location=profile.location or "",
        bio=profile.bio or "",
        interests=list(profile.interests or []),
        languages=list(profile.languages or []),
        timezone=profile.timezone or "",
    )


def get_candidate_buddies(db: Session) -> list[BuddyProfile]:
    """All available buddy profiles owned by active users."""
    return (
        db.query(BuddyProfile)
        .join(User, BuddyProfile.user_id == User.id)
        .options(joinedload(BuddyProfile.user).joinedload(User.profile))
        .filter(
            BuddyProfile.is_available.is_(True),
            User.is_active.is_(True),
        )
        .order_by(BuddyProfile.created_at, BuddyProfile.id)
        .all()
    )


# =============================================================================
# Prompt
# =============================================================================


def _buddy_line(buddy: BuddyProfile) -> str:
    user = buddy.user
    languages = user.profile.languages if user.profile and user.profile.languages else None
    fields = [
        str(user.id),
        user.full_name,
        buddy.location,
        buddy.unit,
        ",".join(buddy.tech_stack or []),
        ",".join(buddy.interests or []),
        buddy.experience or "N/A",
        ",".join(languages) if languages else "N/A",
    ]
    return "|".join(fields)


def build_matching_prompt(profile: NewcomerProfile, buddies: list[BuddyProfile]) -> str:
    newcomer_info = "\n".join(
        [
            "NEWCOMER PROFILE:",
            f"- Name: {profile.first_name} {profile.last_name}",
            f"- Department: {profile.department}",
            f"- Position: {profile.position}",
            f"- Location: {profile.location}",
            f"- Bio: {profile.bio}",
            f"- Interests: {', '.join(profile.interests)}",
            f"- Languages: {', '.join(profile.languages)}",
            f"- Timezone: {profile.timezone}",
        ]
    )
    buddies_info = "\n".join(_buddy_line(buddy) for buddy in buddies)
    return (
        f"{newcomer_info}\n\n"
        f"AVAILABLE BUDDIES (Format: {BUDDY_LINE_FORMAT}):\n"
        f"{buddies_info}\n\n"
        f"{RANKING_INSTRUCTIONS}"
    )


def build_messages(profile: NewcomerProfile, buddies: list[BuddyProfile]) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=build_matching_prompt(profile, buddies)),
    ]


# =============================================================================
# Response parsing
# =============================================================================


def clamp_score(score: float | None) -> float:
    """Clamp into [0, 1]; missing or non-finite scores count as 0."""
    if score is None or not math.isfinite(score):
        return 0.0
    return min(max(score, 0.0), 1.0)


def _summarize(buddy: BuddyProfile) -> BuddyProfileSummary:
    return BuddyProfileSummary(
        location=buddy.location,
        unit=buddy.unit,
        tech_stack=list(buddy.tech_stack or []),
        interests=list(buddy.interests or []),
        experience=buddy.experience or NOT_SPECIFIED,
        mentoring_style=buddy.mentoring_style or NOT_SPECIFIED,
        availability=buddy.availability or NOT_SPECIFIED,
    )


def parse_suggestions(text: str, buddies: list[BuddyProfile]) -> list[AISuggestion]:
    """
    Reconcile the provider's answer against the offered candidates.

    Returns suggestions sorted by score (highest first), one per buddy.

    Raises:
        AISuggestionGenerationError: no JSON object, or no "suggestions" list in it
    """
    data = parse_json_object(text)
    if data is None:
        raise AISuggestionGenerationError("No JSON found in AI response")
    items = data.get("suggestions")
    if not isinstance(items, list):
        raise AISuggestionGenerationError("AI response has no suggestions list")

    offered = {str(buddy.user_id): buddy for buddy in buddies}
    suggestions: list[AISuggestion] = []
    for raw in validate_model_list(RawSuggestion, items):
        buddy_id = raw.buddy_id.strip().lower()
        buddy = offered.get(buddy_id)
        if buddy is None:
            logger.warning(f"Dropping AI suggestion for unknown buddy id {raw.buddy_id!r}")
            continue
        suggestions.append(
            AISuggestion(
                buddy_id=buddy_id,
                buddy_name=buddy.user.full_name,
                score=clamp_score(raw.score),
                reasoning=(raw.reasoning or "").strip() or NO_REASONING,
                buddy_profile=_summarize(buddy),
            )
        )

    suggestions.sort(key=lambda s: s.score, reverse=True)

    seen: set[str] = set()
    unique = []
    for suggestion in suggestions:
        if suggestion.buddy_id in seen:
            continue
        seen.add(suggestion.buddy_id)
        unique.append(suggestion)
    return unique


# =============================================================================
# Ranking
# =============================================================================


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def get_suggestions(
    db: Session,
    newcomer_id: str,
    profile: NewcomerProfile,
    provider: AIProvider,
    cache: SuggestionCache,
    limit: int | None = None,
) -> AISuggestionResponse:
    """
    Ranked buddy suggestions for a newcomer.

    Must be called from sync code (FastAPI sync endpoint, CLI, sync tests):
    the provider call is bridged with run_async.

    Raises:
        AIProviderNotConfiguredError: provider lacks key/url/model (no network call made)
        AISuggestionGenerationError: provider failure, timeout or unparseable answer
    """
    started = time.perf_counter()
    limit = limit or settings.AI_SUGGESTION_LIMIT

    cache_key = build_cache_key(newcomer_id, profile)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug(f"AI suggestion cache hit for newcomer {newcomer_id}")
        return cached

    buddies = get_candidate_buddies(db)
    if not buddies:
        return AISuggestionResponse(
            suggestions=[],
            total_analyzed=0,
            processing_time_ms=_elapsed_ms(started),
        )

    if not provider.is_configured():
        raise AIProviderNotConfiguredError("AI provider is not properly configured")

    logger.info(f"AI matching: analyzing {len(buddies)} buddies for newcomer {newcomer_id}")
    messages = build_messages(profile, buddies)

    try:
        completion = run_async(
            provider.chat(
                messages,
                temperature=settings.AI_TEMPERATURE,
                max_tokens=settings.AI_MAX_TOKENS,
            ),
            timeout=settings.AI_REQUEST_TIMEOUT_SECONDS,
        )
    except TimeoutError as e:
        logger.warning(f"AI provider timed out for newcomer {newcomer_id}")
        raise AISuggestionGenerationError("AI provider request timed out") from e
    except (AIProviderError, httpx.HTTPError) as e:
        logger.warning(f"AI provider call failed for newcomer {newcomer_id}: {e}")
        raise AISuggestionGenerationError(str(e)) from e

    try:
        suggestions = parse_suggestions(completion.content, buddies)
    except AISuggestionGenerationError as e:
        logger.warning(f"Unparseable AI response for newcomer {newcomer_id}: {e}")
        raise

    response = AISuggestionResponse(
        suggestions=suggestions[:limit],
        total_analyzed=len(buddies),
        processing_time_ms=_elapsed_ms(started),
    )
    cache.set(cache_key, response)
    return response
