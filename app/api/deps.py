"""API dependencies"""
from typing import Any, Callable

from fastapi import Request

from app.core.config import settings
from app.tasks.scheduler import ReconcileSupervisor


def get_supervisor(request: Request) -> ReconcileSupervisor:
    return request.app.state.supervisor


def get_poll_scheduler(request: Request) -> Callable[[int], Any]:
    """Where a freshly provisioned domain gets its bounded verification poll"""
    if settings.RECONCILE_BACKEND == "celery":
        from app.tasks.domain_tasks import schedule_poll
        return schedule_poll
    return get_supervisor(request).schedule_poll
