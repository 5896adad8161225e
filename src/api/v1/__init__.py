"""API v1 router configuration."""

from fastapi import APIRouter

from api.v1.routes.engine import audit_router, digests_router
from api.v1.routes.engine import router as engine_router
from api.v1.routes.events import router as events_router
from api.v1.routes.notifications import router as notifications_router
from api.v1.routes.preferences import reminder_settings_router
from api.v1.routes.preferences import router as preferences_router
from api.v1.routes.rules import router as rules_router

router = APIRouter()
router.include_router(notifications_router)
router.include_router(events_router)
router.include_router(rules_router)
router.include_router(preferences_router)
router.include_router(reminder_settings_router)
router.include_router(digests_router)
router.include_router(audit_router)
router.include_router(engine_router)
