"""Scheduled cleanup job tests (the scheduler is built but never started)"""
from __future__ import annotations

from datetime import timedelta

import pytest
import redis.asyncio as aioredis

from field_tools.core.errors import SessionStoreError
from field_tools.core.timezone import now
from field_tools.repositories import InMemoryUSSDSessionStore, InMemoryWhatsAppSessionRepository
from field_tools.repositories import whatsapp_session_repository
from field_tools.repositories.ussd_session_repository import RedisUSSDSessionStore
from field_tools.tasks.scheduler import create_scheduler


class BrokenStore:
    def __init__(self):
        self.calls = 0

    async def clean_expired(self) -> int:
        self.calls += 1
        raise SessionStoreError("session backend unavailable")


def test_scheduler_registers_both_sweeps_for_in_memory_stores() -> None:
    scheduler = create_scheduler(InMemoryUSSDSessionStore(), InMemoryWhatsAppSessionRepository())

    ids = {job.id for job in scheduler.get_jobs()}
    assert ids == {"whatsapp_sessions_cleanup", "ussd_sessions_cleanup"}

    job = scheduler.get_job("whatsapp_sessions_cleanup")
    assert job.trigger.interval == timedelta(seconds=60)
    assert job.max_instances == 1
    assert job.coalesce is True


def test_redis_backed_ussd_store_gets_no_sweep() -> None:
    store = RedisUSSDSessionStore(aioredis.Redis())
    scheduler = create_scheduler(store, InMemoryWhatsAppSessionRepository())

    assert [job.id for job in scheduler.get_jobs()] == ["whatsapp_sessions_cleanup"]


@pytest.mark.asyncio
async def test_cleanup_job_sweeps_expired_sessions(monkeypatch) -> None:
    repo = InMemoryWhatsAppSessionRepository()
    await repo.get_or_create("23276000001")
    await repo.get_or_create("23276000002")
    later = now() + timedelta(minutes=6)
    monkeypatch.setattr(whatsapp_session_repository, "now", lambda: later)

    scheduler = create_scheduler(InMemoryUSSDSessionStore(), repo)
    await scheduler.get_job("whatsapp_sessions_cleanup").func()

    assert repo._sessions == {}


@pytest.mark.asyncio
async def test_cleanup_job_swallows_store_errors() -> None:
    store = BrokenStore()
    scheduler = create_scheduler(InMemoryUSSDSessionStore(), store)

    await scheduler.get_job("whatsapp_sessions_cleanup").func()

    assert store.calls == 1
