"""Trigger rule API routes."""

from fastapi import APIRouter, Depends, Request

from api.v1.dependencies import get_notification_engine
from api.v1.schemas.common import ErrorResponse
from api.v1.schemas.rule import RuleListResponse, RuleResponse, RuleUpdateRequest
from core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from domain.services.notification_engine import NotificationEngine

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=RuleListResponse, summary="List trigger rules")
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def list_rules(
    request: Request,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> RuleListResponse:
    return RuleListResponse(data=[RuleResponse.model_validate(r) for r in engine.list_rules()])


@router.get(
    "/{rule_id}",
    response_model=RuleResponse,
    summary="Get a trigger rule",
    responses={404: {"model": ErrorResponse, "description": "Rule not found"}},
)
@limiter.limit(READ_LIMIT)  # type: ignore[untyped-decorator]
async def get_rule(
    request: Request,
    rule_id: str,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> RuleResponse:
    return RuleResponse.model_validate(engine.get_rule(rule_id))


@router.patch(
    "/{rule_id}",
    response_model=RuleResponse,
    summary="Update a trigger rule",
    responses={
        400: {"model": ErrorResponse, "description": "Field cannot be updated"},
        404: {"model": ErrorResponse, "description": "Rule not found"},
    },
)
@limiter.limit(WRITE_LIMIT)  # type: ignore[untyped-decorator]
async def update_rule(
    request: Request,
    rule_id: str,
    body: RuleUpdateRequest,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> RuleResponse:
    """Apply a partial update. The change persists and applies to the next resolution."""
    patch = body.model_dump(exclude_unset=True)
    return RuleResponse.model_validate(await engine.update_rule(rule_id, patch))
