"""AI matching router - ranked buddy suggestions for newcomers (HR only)."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from buddymatch.core.config import settings
from buddymatch.core.deps import (
    get_ai_provider,
    get_db,
    get_suggestion_cache,
    require_csrf_header,
    require_roles,
)
from buddymatch.core.rate_limit import AI_SUGGESTIONS_LIMIT, limiter
from buddymatch.db.enums import ROLES_CAN_MANAGE_MATCHES
from buddymatch.schemas.ai_matching import (
    AISuggestionRequest,
    AISuggestionResponse,
    AIStatusResponse,
)
from buddymatch.schemas.auth import UserSession
from buddymatch.services import ai_matching_service
from buddymatch.services.ai_provider import AIProvider
from buddymatch.services.ai_suggestion_cache import SuggestionCache, SuggestionCacheUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ai-matching",
    tags=["AI Matching"],
    dependencies=[Depends(require_roles(ROLES_CAN_MANAGE_MATCHES))],
)

NOT_ENABLED_MESSAGE = "AI matching is disabled. Please check your AI provider configuration."


@router.post(
    "/suggestions",
    response_model=AISuggestionResponse,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(AI_SUGGESTIONS_LIMIT)
def get_suggestions(
    request: Request,
    data: AISuggestionRequest,
    db: Session = Depends(get_db),
    provider: AIProvider = Depends(get_ai_provider),
    cache: SuggestionCache = Depends(get_suggestion_cache),
):
    """Rank available buddies for a newcomer with the configured completion provider."""
    if not ai_matching_service.is_enabled(provider):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=NOT_ENABLED_MESSAGE)

    try:
        newcomer_id = UUID(data.newcomer_id.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Newcomer not found")

    try:
        profile = ai_matching_service.load_newcomer_profile(db, newcomer_id)
        return ai_matching_service.get_suggestions(
            db=db,
            newcomer_id=str(newcomer_id),
            profile=profile,
            provider=provider,
            cache=cache,
        )
    except ai_matching_service.NewcomerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ai_matching_service.IncompleteNewcomerProfileError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ai_matching_service.AIProviderNotConfiguredError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=NOT_ENABLED_MESSAGE)
    except ai_matching_service.AISuggestionGenerationError as e:
        logger.error(f"AI suggestions failed for newcomer {newcomer_id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Failed to generate AI suggestions",
                "details": str(e) if settings.ENV == "dev" else None,
            },
        )


@router.post("/clear-cache", dependencies=[Depends(require_csrf_header)])
def clear_cache(cache: SuggestionCache = Depends(get_suggestion_cache)):
    try:
        cache.clear()
    except SuggestionCacheUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return {"message": "AI suggestion cache cleared successfully"}


@router.get("/status", response_model=AIStatusResponse)
def get_status(provider: AIProvider = Depends(get_ai_provider)) -> AIStatusResponse:
    enabled = ai_matching_service.is_enabled(provider)
    return AIStatusResponse(
        enabled=enabled,
        message="AI matching is enabled and ready to use" if enabled else NOT_ENABLED_MESSAGE,
    )
