"""
API routers. ``router`` aggregates every endpoint group under /api.
"""
from fastapi import APIRouter

from notetaker.api import ai, configuration, events, notetakers, tasks, webhooks

router = APIRouter()
router.include_router(webhooks.router)
router.include_router(notetakers.router)
router.include_router(ai.router)
router.include_router(tasks.router)
router.include_router(events.router)
router.include_router(configuration.router)

__all__ = ["router"]
