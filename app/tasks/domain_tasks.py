"""Domain verification tasks for deployments running reconciliation in Celery"""
import asyncio
import logging

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.services.providers import provider_clients
from app.services.verification_service import VerificationService
from app.tasks import celery_app
from app.tasks.scheduler import reconcile_round, sweep_all
from app.tasks.utils import create_task_db_session

setup_logging()
logger = logging.getLogger(__name__)


async def _with_session_factory(func, *args):
    engine, session_factory = create_task_db_session()
    try:
        return await func(session_factory, *args)
    finally:
        await engine.dispose()


async def _reconcile_domain(session_factory, domain_id: int) -> dict:
    async with session_factory() as db:
        async with provider_clients() as clients:
            result = await VerificationService(db, clients.cloudflare, clients.aliyun).reconcile_by_id(domain_id)
    return {
        "success": result.success,
        "status": result.status,
        "repaired": result.repaired,
        "message": result.message,
    }


@celery_app.task(name="app.tasks.domain.reconcile_domain")
def reconcile_domain(domain_id: int):
    """Run one verification round for a domain"""
    return asyncio.run(_with_session_factory(_reconcile_domain, domain_id))


@celery_app.task(name="app.tasks.domain.reconcile_all_domains")
def reconcile_all_domains():
    """Periodic sweep over every stored domain"""
    return asyncio.run(_with_session_factory(sweep_all, provider_clients))


@celery_app.task(bind=True, name="app.tasks.domain.poll_domain_verification")
def poll_domain_verification(self, domain_id: int, attempt: int = 1):
    """Bounded post-creation poll; re-enqueues itself until done"""
    try:
        outcome = asyncio.run(_with_session_factory(reconcile_round, provider_clients, domain_id))
    except Exception as e:
        logger.error(f"Verification poll for domain {domain_id} failed: {e}", exc_info=True)
        outcome = None
    
    if outcome is not None:
        return {"domain_id": domain_id, "outcome": outcome.value, "attempts": attempt}
    
    if attempt >= settings.VERIFY_MAX_ATTEMPTS:
        logger.warning(f"Domain {domain_id} not verified after {attempt} attempts, polling stopped")
        return {"domain_id": domain_id, "outcome": "exhausted", "attempts": attempt}
    
    self.apply_async((domain_id, attempt + 1), countdown=settings.VERIFY_INTERVAL)
    return {"domain_id": domain_id, "outcome": "pending", "attempts": attempt}


def schedule_poll(domain_id: int):
    """Celery counterpart of ``ReconcileSupervisor.schedule_poll``"""
    return poll_domain_verification.apply_async((domain_id, 1), countdown=settings.VERIFY_INITIAL_DELAY)
