"""Read-only reporting endpoints over stored interactions."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_observability, get_store
from api.transport import failure_response
from models.data_models import StoredInteraction
from storage.interaction_store import InteractionStore
from tools.error_handling import describe_error
from tools.observability import ObservabilityManager

router = APIRouter(prefix="/admin", tags=["admin"])

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

CODE_PREVIEW_CHARS = 200
RESPONSE_PREVIEW_CHARS = 300


def parse_pagination(page: Optional[str], limit: Optional[str]) -> Tuple[int, int]:
    """
    Parse ``page`` and ``limit`` query values.

    Missing, non-numeric or non-positive values fall back to the defaults;
    ``limit`` is capped at MAX_LIMIT.
    """
    def _positive(value: Optional[str], default: int) -> int:
        try:
            parsed = int(value) if value is not None else default
        except (TypeError, ValueError):
            return default
        return parsed if parsed > 0 else default

    return _positive(page, DEFAULT_PAGE), min(_positive(limit, DEFAULT_LIMIT), MAX_LIMIT)


def _preview(text: str, max_chars: int) -> str:
    return text[:max_chars] + ("..." if len(text) > max_chars else "")


def interaction_to_wire(interaction: StoredInteraction, truncate: bool = False) -> Dict[str, Any]:
    """Serialise a stored interaction for admin responses."""
    user_code = interaction.user_code
    ai_response = interaction.ai_response
    if truncate:
        user_code = _preview(user_code, CODE_PREVIEW_CHARS)
        ai_response = _preview(ai_response, RESPONSE_PREVIEW_CHARS)

    return {
        "id": interaction.id,
        "userCode": user_code,
        "aiResponse": ai_response,
        "userIp": interaction.user_ip,
        "userAgent": interaction.user_agent,
        "codeLanguage": interaction.code_language,
        "sessionId": interaction.session_id,
        "responseTime": interaction.response_time,
        "timestamp": interaction.timestamp.isoformat(),
    }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/stats")
async def get_stats(
    store: InteractionStore = Depends(get_store),
    observability: ObservabilityManager = Depends(get_observability)
) -> JSONResponse:
    """Aggregate counts, language breakdown and average latency."""
    request_id = observability.generate_request_id()
    logger = observability.get_logger("admin").bind(request_id=request_id, endpoint="GET /admin/stats")
    logger.info("admin_stats_requested")

    try:
        loop = asyncio.get_running_loop()
        stats = await loop.run_in_executor(None, store.get_stats)
    except Exception as e:
        logger.error("admin_stats_failed", error=describe_error(e))
        return failure_response(500, "Failed to fetch statistics", describe_error(e), request_id)

    logger.info(
        "admin_stats_retrieved",
        total_interactions=stats.total_interactions,
        unique_users=stats.unique_users,
        language_stats_count=len(stats.language_stats)
    )
    return JSONResponse({
        "success": True,
        "stats": stats.to_wire(),
        "requestId": request_id,
        "timestamp": _now_iso(),
    })


@router.get("/interactions")
async def get_recent_interactions(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    store: InteractionStore = Depends(get_store),
    observability: ObservabilityManager = Depends(get_observability)
) -> JSONResponse:
    """
    Most recent interactions, newest first.

    Code and response bodies are truncated to short previews.
    """
    request_id = observability.generate_request_id()
    logger = observability.get_logger("admin").bind(request_id=request_id, endpoint="GET /admin/interactions")
    page_number, page_size = parse_pagination(page, limit)
    logger.info("admin_recent_requested", page=page_number, limit=page_size)

    try:
        loop = asyncio.get_running_loop()
        interactions, total = await loop.run_in_executor(
            None, store.list_recent, page_number, page_size
        )
    except Exception as e:
        logger.error("admin_recent_failed", error=describe_error(e))
        return failure_response(500, "Failed to fetch interactions", describe_error(e), request_id)

    total_pages = InteractionStore.total_pages(total, page_size)
    logger.info(
        "admin_recent_retrieved",
        interactions_found=len(interactions),
        total_pages=total_pages,
        total_items=total
    )
    return JSONResponse({
        "success": True,
        "data": {
            "interactions": [interaction_to_wire(i, truncate=True) for i in interactions],
            "pagination": {
                "currentPage": page_number,
                "totalPages": total_pages,
                "totalItems": total,
                "hasNextPage": page_number < total_pages,
                "hasPrevPage": page_number > 1,
            },
        },
        "requestId": request_id,
        "timestamp": _now_iso(),
    })


@router.get("/interactions/ip/{ip}")
async def get_interactions_by_ip(
    ip: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    store: InteractionStore = Depends(get_store),
    observability: ObservabilityManager = Depends(get_observability)
) -> JSONResponse:
    """Full interaction records from one address, newest first."""
    request_id = observability.generate_request_id()
    logger = observability.get_logger("admin").bind(
        request_id=request_id,
        endpoint="GET /admin/interactions/ip/{ip}",
        target_ip=ip
    )
    page_number, page_size = parse_pagination(page, limit)
    logger.info("admin_ip_requested", page=page_number, limit=page_size)

    try:
        loop = asyncio.get_running_loop()
        interactions, total = await loop.run_in_executor(
            None, store.list_by_ip, ip, page_number, page_size
        )
    except Exception as e:
        logger.error("admin_ip_failed", error=describe_error(e))
        return failure_response(500, "Failed to fetch IP interactions", describe_error(e), request_id)

    logger.info("admin_ip_retrieved", interactions_found=len(interactions), total_for_ip=total)
    return JSONResponse({
        "success": True,
        "data": {
            "ip": ip,
            "interactions": [interaction_to_wire(i) for i in interactions],
            "totalInteractions": total,
            "pagination": {
                "currentPage": page_number,
                "totalItems": total,
                "itemsPerPage": page_size,
            },
        },
        "requestId": request_id,
        "timestamp": _now_iso(),
    })
