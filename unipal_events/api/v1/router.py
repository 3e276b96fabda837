"""
API v1 router for the UniPal Events Service.
"""

from fastapi import APIRouter

from .events import router as events_router
from .invitations import router as invitations_router
from .attendance import router as attendance_router
from .feedback import router as feedback_router
from .stats import router as stats_router

router = APIRouter(prefix="/v1")

router.include_router(events_router)
router.include_router(invitations_router)
router.include_router(attendance_router)
router.include_router(feedback_router)
router.include_router(stats_router)
