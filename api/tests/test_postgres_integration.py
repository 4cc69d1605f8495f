from __future__ import annotations

import asyncio
import os
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import asyncpg  # type: ignore[import-untyped]
import pytest

from crewlink.core.auth import company, worker
from crewlink.services.errors import StateError
from crewlink.services.invitations import InvitationDispatcher
from crewlink.services.lifecycle import JobLifecycleController
from crewlink.services.projects import ProjectRegistry
from crewlink.services.repository import PostgresRepository
from crewlink.services.responses import ResponseProcessor
from crewlink.services.skills import SkillCatalogCache

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "db" / "schema.sql"
ACME = company("acme")

T = TypeVar("T")


@pytest.fixture(scope="session")
def database_url() -> str:
    url = os.getenv("CREWLINK_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not url:
        pytest.skip("integration tests require CREWLINK_DATABASE_URL or DATABASE_URL")
    return url


@pytest.fixture(autouse=True)
def reset_tables(database_url: str) -> None:
    _run(_reset_schema(database_url))


def test_engagement_flow_against_postgres(database_url: str, clock, bus) -> None:
    async def scenario():
        repository = PostgresRepository(database_url=database_url, min_pool_size=1, max_pool_size=4)
        try:
            registry = ProjectRegistry(
                repository,
                clock=clock,
                skill_cache=SkillCatalogCache(repository.list_skills),
            )
            dispatcher = InvitationDispatcher(repository, events=bus, clock=clock)
            processor = ResponseProcessor(repository, events=bus, clock=clock)
            controller = JobLifecycleController(repository, events=bus, clock=clock)

            project = await registry.create_project(
                ACME,
                {
                    "name": "Roof repair",
                    "address": "7 Mill Lane",
                    "required_workers": 2,
                    "payment_type": "fixed",
                    "amount": "1200",
                    "start_date": "2026-03-10",
                    "end_date": "2026-03-12",
                    "skills": ["carpentry"],
                },
            )
            batch = await dispatcher.invite_workers(project.id, ["ana", "bob", "ana"], ACME)
            invitation = batch.created[0]

            outcomes = await asyncio.gather(
                processor.respond(invitation.id, worker("ana"), "accepted"),
                processor.respond(invitation.id, worker("ana"), "accepted"),
                return_exceptions=True,
            )
            job = next(outcome.job_record for outcome in outcomes if not isinstance(outcome, Exception))
            for action in ("check_in", "start_work", "complete_work"):
                await controller.advance(job.id, action, worker("ana"))
            await controller.confirm(job.id, ACME, quality_rating=4)
            paid = await controller.pay(job.id, ACME, payment_method="cash")
            summary = await registry.get_project(project.id)
            await bus.drain()
            return project, batch, outcomes, paid, summary
        finally:
            await repository.close()

    project, batch, outcomes, paid, summary = _run(scenario())

    assert str(project.daily_wage) == "400.00"
    assert project.skill_ids == [2]
    assert batch.skipped == ["ana"]
    assert sum(isinstance(outcome, StateError) for outcome in outcomes) == 1
    assert paid.status == "paid"
    assert paid.paid_amount == paid.wage_amount
    assert summary.invitation_counts["accepted"] == 1
    assert summary.invitation_counts["pending"] == 1


async def _reset_schema(database_url: str) -> None:
    conn = await asyncpg.connect(dsn=database_url)
    try:
        await conn.execute(SCHEMA_PATH.read_text())
        await conn.execute("truncate table notifications, job_records, invitations, projects")
    finally:
        await conn.close()


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)
