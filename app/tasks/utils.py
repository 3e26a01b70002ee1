"""Shared utilities for Celery tasks"""
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from app.core.config import settings


def create_task_db_session():
    """
    Create a new database engine and session factory for use in Celery tasks.
    
    Each Celery task runs its coroutine with ``asyncio.run()`` on a fresh event
    loop, so the engine has to be bound to that loop. Reusing the global
    engine from app.core.database would hand out connections created on a
    loop that no longer exists.
    """
    task_engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
    )
    session_factory = async_sessionmaker(
        task_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return task_engine, session_factory
