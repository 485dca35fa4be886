"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from backend.domain.errors import ChainAdjustmentFailedError, CoordinationError
from backend.services.conflict_service import ScheduleCombinationService
from backend.services.recommendation_service import TimeRecommendationService
from backend.services.request_service import RequestCoordinationService
from backend.services.travel_service import TravelSchedulingService


def _service_unavailable(name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{name} is not initialized",
    )


def get_combination_service(request: Request) -> ScheduleCombinationService:
    service = getattr(request.app.state, "combination_service", None)
    if service is None:
        raise _service_unavailable("Combination service")
    return service


def get_recommendation_service(request: Request) -> TimeRecommendationService:
    service = getattr(request.app.state, "recommendation_service", None)
    if service is None:
        raise _service_unavailable("Recommendation service")
    return service


def get_travel_service(request: Request) -> TravelSchedulingService:
    service = getattr(request.app.state, "travel_service", None)
    if service is None:
        raise _service_unavailable("Travel scheduling service")
    return service


def get_request_service(request: Request) -> RequestCoordinationService:
    service = getattr(request.app.state, "request_service", None)
    if service is None:
        raise _service_unavailable("Request coordination service")
    return service


async def get_actor_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return x_user_id.strip()


def to_http_exception(exc: CoordinationError) -> HTTPException:
    """Translate a domain failure into its transport-level response."""
    detail: dict[str, object] = {"code": exc.code, "message": exc.message}
    if isinstance(exc, ChainAdjustmentFailedError) and exc.displaced_member_id is not None:
        detail["displacedMemberId"] = exc.displaced_member_id
    return HTTPException(status_code=exc.status_code, detail=detail)
