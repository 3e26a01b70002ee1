"""Celery configuration"""
from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "geoedge_panel",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.tasks.domain_tasks",
    ]
)

celery_app.conf.task_routes = {
    "app.tasks.domain.*": {"queue": "domains"},
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

# Periodic tasks, only when the sweep is not run inside the API process
if settings.RECONCILE_BACKEND == "celery":
    celery_app.conf.beat_schedule = {
        "reconcile-all-domains": {
            "task": "app.tasks.domain.reconcile_all_domains",
            "schedule": settings.SWEEP_INTERVAL,
        },
    }
