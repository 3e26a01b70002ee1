"""
Background reconciliation.

Two independent loops drive ``VerificationService.reconcile``:

* a bounded poll started after a domain is provisioned (initial delay, fixed
  interval, attempt budget; stops early when the domain is active or gone)
* an unbounded sweep over every stored domain at a fixed cadence

Both are asyncio tasks owned by ``ReconcileSupervisor`` and only end early
through ``shutdown()``.
"""
import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import select

from app.core.database import AsyncSessionLocal
from app.models.domain import DomainConfig, DomainStatus
from app.services.providers import provider_clients
from app.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


class PollOutcome(str, enum.Enum):
    ACTIVE = "active"
    MISSING = "missing"
    EXHAUSTED = "exhausted"


async def reconcile_round(session_factory, clients_factory, domain_id: int) -> Optional[PollOutcome]:
    """One poll attempt; returns an outcome when polling should stop"""
    async with session_factory() as db:
        domain = await db.get(DomainConfig, domain_id)
        if domain is None or not domain.edge_hostname_id:
            logger.info(f"Domain config {domain_id} no longer exists, polling stopped")
            return PollOutcome.MISSING
        if domain.status == DomainStatus.ACTIVE.value:
            logger.info(f"{domain.full_domain} is already active, polling stopped")
            return PollOutcome.ACTIVE
        
        async with clients_factory() as clients:
            result = await VerificationService(db, clients.cloudflare, clients.aliyun).reconcile(domain)
        
        if not result.success:
            logger.warning(f"Verification round for {domain.full_domain} failed: {result.message}")
        elif result.is_active:
            logger.info(f"{domain.full_domain} verified")
            return PollOutcome.ACTIVE
        else:
            logger.info(
                f"{domain.full_domain} - SSL: {result.ssl_status}, Host: {result.hostname_status}"
            )
    return None


async def sweep_all(session_factory, clients_factory) -> Dict[str, str]:
    """Reconcile every stored domain, one after the other"""
    logger.info("Starting reconciliation sweep")
    results: Dict[str, str] = {}
    async with session_factory() as db:
        domain_ids = (await db.execute(select(DomainConfig.id).order_by(DomainConfig.id))).scalars().all()
        async with clients_factory() as clients:
            service = VerificationService(db, clients.cloudflare, clients.aliyun)
            for domain_id in domain_ids:
                label = str(domain_id)
                try:
                    domain = await db.get(DomainConfig, domain_id)
                    if domain is None:
                        continue
                    label = domain.full_domain
                    result = await service.reconcile(domain)
                    results[label] = result.status if result.success else f"error: {result.message}"
                except Exception as e:
                    logger.error(f"Reconciliation of {label} failed: {e}", exc_info=True)
                    await db.rollback()
                    results[label] = f"error: {e}"
    return results


class ReconcileSupervisor:
    """Owns the poll tasks and the periodic sweep task"""
    
    def __init__(
        self,
        session_factory=AsyncSessionLocal,
        clients_factory=provider_clients,
        initial_delay: float = 10.0,
        interval: float = 30.0,
        max_attempts: int = 30,
        sweep_interval: float = 120.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.clients_factory = clients_factory
        self.initial_delay = initial_delay
        self.interval = interval
        self.max_attempts = max_attempts
        self.sweep_interval = sweep_interval
        self._sleep = sleep
        self._polls: Dict[int, asyncio.Task] = {}
        self._sweep: Optional[asyncio.Task] = None
    
    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ReconcileSupervisor":
        return cls(
            initial_delay=settings.VERIFY_INITIAL_DELAY,
            interval=settings.VERIFY_INTERVAL,
            max_attempts=settings.VERIFY_MAX_ATTEMPTS,
            sweep_interval=settings.SWEEP_INTERVAL,
            **kwargs,
        )
    
    def schedule_poll(self, domain_id: int) -> "asyncio.Task[PollOutcome]":
        """Start the bounded poll for a domain; an already running poll is reused"""
        task = self._polls.get(domain_id)
        if task is not None and not task.done():
            return task
        task = asyncio.create_task(self._poll(domain_id), name=f"verify-poll-{domain_id}")
        self._polls[domain_id] = task
        task.add_done_callback(lambda t, key=domain_id: self._forget(key, t))
        return task
    
    def _forget(self, domain_id: int, task: asyncio.Task):
        if self._polls.get(domain_id) is task:
            del self._polls[domain_id]
    
    async def _poll(self, domain_id: int) -> PollOutcome:
        await self._sleep(self.initial_delay)
        for attempt in range(1, self.max_attempts + 1):
            logger.debug(f"Verification poll for domain {domain_id} ({attempt}/{self.max_attempts})")
            try:
                outcome = await reconcile_round(self.session_factory, self.clients_factory, domain_id)
            except Exception as e:
                logger.error(f"Verification poll for domain {domain_id} failed: {e}", exc_info=True)
                outcome = None
            if outcome is not None:
                return outcome
            if attempt < self.max_attempts:
                await self._sleep(self.interval)
        logger.warning(f"Domain {domain_id} not verified after {self.max_attempts} attempts, polling stopped")
        return PollOutcome.EXHAUSTED
    
    def start_sweep(self) -> asyncio.Task:
        if self._sweep is None or self._sweep.done():
            self._sweep = asyncio.create_task(self._sweep_loop(), name="reconcile-sweep")
            logger.info(f"Reconciliation sweep started (every {self.sweep_interval}s)")
        return self._sweep
    
    async def _sweep_loop(self):
        while True:
            await self._sleep(self.sweep_interval)
            try:
                await sweep_all(self.session_factory, self.clients_factory)
            except Exception as e:
                logger.error(f"Reconciliation sweep failed: {e}", exc_info=True)
    
    @property
    def active_polls(self) -> int:
        return sum(1 for t in self._polls.values() if not t.done())
    
    async def shutdown(self):
        tasks = [t for t in self._polls.values() if not t.done()]
        if self._sweep is not None and not self._sweep.done():
            tasks.append(self._sweep)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._polls.clear()
        self._sweep = None
