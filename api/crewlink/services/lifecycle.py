"""Execution and closure states of a JobRecord.

Every action is one row of ``JOB_TRANSITIONS``: who may perform it, the
state it must start from, the state it leads to and the event sent to the
other party. Payload validation is specific to each action.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from opentelemetry import trace

from crewlink.core.auth import ActorRole, Principal
from crewlink.core.clock import Clock, SystemClock
from crewlink.services import events
from crewlink.services.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from crewlink.services.events import EngagementEvent, EventBus
from crewlink.services.models import JOB_STATUSES, JobRecord
from crewlink.services.repository import EngagementRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PAYMENT_METHODS = ("wechat", "alipay", "transfer", "cash")
AMOUNT_FIELDS = {"amount", "wage_amount", "paid_amount", "daily_wage"}
MAX_NOTES_LENGTH = 2000
MAX_PHOTOS = 20


@dataclass(slots=True, frozen=True)
class JobTransition:
    action: str
    role: ActorRole
    from_status: str
    to_status: str
    event_type: str
    payload_fields: frozenset[str] = frozenset()


JOB_TRANSITIONS: dict[str, JobTransition] = {
    "check_in": JobTransition("check_in", ActorRole.WORKER, "active", "checked_in", events.JOB_CHECKED_IN),
    "start_work": JobTransition("start_work", ActorRole.WORKER, "checked_in", "in_progress", events.JOB_STARTED),
    "complete_work": JobTransition(
        "complete_work",
        ActorRole.WORKER,
        "in_progress",
        "completed",
        events.JOB_COMPLETED,
        frozenset({"photos", "notes"}),
    ),
    "confirm": JobTransition(
        "confirm",
        ActorRole.COMPANY,
        "completed",
        "confirmed",
        events.JOB_CONFIRMED,
        frozenset({"quality_rating", "notes"}),
    ),
    "pay": JobTransition(
        "pay",
        ActorRole.COMPANY,
        "confirmed",
        "paid",
        events.JOB_PAID,
        frozenset({"payment_method", "transaction_reference", "notes"}),
    ),
}


class JobLifecycleController:
    def __init__(
        self,
        repository: EngagementRepository,
        *,
        events: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.repository = repository
        self.events = events or EventBus()
        self.clock = clock or SystemClock()

    async def advance(
        self,
        job_id: str,
        action: str,
        actor: Principal,
        payload: Mapping[str, Any] | None = None,
    ) -> JobRecord:
        transition = JOB_TRANSITIONS.get(action)
        if transition is None:
            raise ValidationError(
                f"action must be one of: {', '.join(JOB_TRANSITIONS)}",
                entity="job_record",
                entity_id=job_id,
                field="action",
            )

        job = await self.get_job(job_id, actor)
        if actor.role is not transition.role:
            raise AuthorizationError(
                f"{action} can only be performed by the {transition.role.value}",
                entity="job_record",
                entity_id=job_id,
            )
        if job.status != transition.from_status:
            raise StateError(
                f"cannot {action} a job that is {job.status}",
                entity="job_record",
                entity_id=job_id,
                expected_state=transition.from_status,
                current_state=job.status,
            )

        now = self.clock.now()
        changes = self._build_changes(transition, job, dict(payload or {}), now)

        with tracer.start_as_current_span("jobs.advance") as span:
            span.set_attribute("job.action", action)
            updated = await self.repository.update_job_status(
                job_id=job_id,
                from_status=transition.from_status,
                to_status=transition.to_status,
                changes=changes,
                updated_at=now,
            )
        if updated is None:
            latest = await self.repository.get_job(job_id)
            raise StateError(
                f"cannot {action} a job that is {latest.status if latest else 'missing'}",
                entity="job_record",
                entity_id=job_id,
                expected_state=transition.from_status,
                current_state=latest.status if latest else None,
            )

        self._notify_counterpart(transition, updated)
        logger.info(
            "job advanced id=%s action=%s from=%s to=%s",
            job_id,
            action,
            transition.from_status,
            transition.to_status,
        )
        return updated

    async def check_in(self, job_id: str, actor: Principal) -> JobRecord:
        return await self.advance(job_id, "check_in", actor)

    async def start_work(self, job_id: str, actor: Principal) -> JobRecord:
        return await self.advance(job_id, "start_work", actor)

    async def complete_work(
        self,
        job_id: str,
        actor: Principal,
        *,
        photos: list[str] | None = None,
        notes: str | None = None,
    ) -> JobRecord:
        return await self.advance(job_id, "complete_work", actor, {"photos": photos or [], "notes": notes})

    async def confirm(self, job_id: str, actor: Principal, *, quality_rating: int, notes: str | None = None) -> JobRecord:
        return await self.advance(job_id, "confirm", actor, {"quality_rating": quality_rating, "notes": notes})

    async def pay(
        self,
        job_id: str,
        actor: Principal,
        *,
        payment_method: str,
        transaction_reference: str | None = None,
        notes: str | None = None,
    ) -> JobRecord:
        return await self.advance(
            job_id,
            "pay",
            actor,
            {"payment_method": payment_method, "transaction_reference": transaction_reference, "notes": notes},
        )

    async def get_job(self, job_id: str, actor: Principal) -> JobRecord:
        job = await self.repository.get_job(job_id)
        if job is None or not _is_party(job, actor):
            raise NotFoundError("job record not found", entity="job_record", entity_id=job_id)
        return job

    async def list_jobs(
        self,
        actor: Principal,
        *,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[JobRecord]:
        if status is not None and status not in JOB_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(JOB_STATUSES)}", field="status")
        return await self.repository.list_jobs(
            company_id=actor.subject if actor.is_company else None,
            worker_id=actor.subject if actor.is_worker else None,
            status=status,
            limit=limit,
            offset=offset,
        )

    def _build_changes(
        self,
        transition: JobTransition,
        job: JobRecord,
        payload: dict[str, Any],
        now: datetime,
    ) -> dict[str, Any]:
        amount_keys = sorted(AMOUNT_FIELDS & payload.keys())
        if amount_keys:
            raise ValidationError(
                "payment amount is fixed when the invitation is accepted",
                entity="job_record",
                entity_id=job.id,
                field=amount_keys[0],
            )
        unknown = sorted(set(payload) - transition.payload_fields)
        if unknown:
            raise ValidationError(
                f"unsupported field for {transition.action}: {unknown[0]}",
                entity="job_record",
                entity_id=job.id,
                field=unknown[0],
            )

        if transition.action == "check_in":
            return {"check_in_time": now}
        if transition.action == "start_work":
            return {"start_work_time": now}
        if transition.action == "complete_work":
            return {
                "complete_time": now,
                "photos": _validate_photos(payload.get("photos")),
                "complete_notes": _validate_notes(payload.get("notes")),
            }
        if transition.action == "confirm":
            return {
                "quality_rating": _validate_rating(payload.get("quality_rating")),
                "confirmation_notes": _validate_notes(payload.get("notes")),
                "confirmed_at": now,
            }
        method = payload.get("payment_method")
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
                entity="job_record",
                field="payment_method",
            )
        reference = payload.get("transaction_reference")
        reference = reference.strip() if isinstance(reference, str) else None
        if method != "cash" and not reference:
            raise ValidationError(
                "transaction_reference is required unless paid in cash",
                entity="job_record",
                field="transaction_reference",
            )
        return {
            "payment_method": method,
            "transaction_reference": reference or None,
            "payment_notes": _validate_notes(payload.get("notes")),
            "paid_amount": job.wage_amount,
            "paid_at": now,
        }

    def _notify_counterpart(self, transition: JobTransition, job: JobRecord) -> None:
        if transition.role is ActorRole.WORKER:
            recipient_id, recipient_role = job.company_id, ActorRole.COMPANY.value
        else:
            recipient_id, recipient_role = job.worker_id, ActorRole.WORKER.value
        payload: dict[str, Any] = {
            "job_id": job.id,
            "project_id": job.project_id,
            "status": job.status,
        }
        if job.status == "confirmed":
            payload["quality_rating"] = job.quality_rating
        if job.status == "paid":
            payload["paid_amount"] = str(job.paid_amount)
            payload["payment_method"] = job.payment_method
        self.events.publish(
            EngagementEvent(
                type=transition.event_type,
                recipient_id=recipient_id,
                recipient_role=recipient_role,
                payload=payload,
                occurred_at=job.updated_at,
            )
        )


def _is_party(job: JobRecord, actor: Principal) -> bool:
    if actor.is_company:
        return job.company_id == actor.subject
    return job.worker_id == actor.subject


def _validate_rating(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError("quality_rating must be an integer from 1 to 5", entity="job_record", field="quality_rating")
    return value


def _validate_notes(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("notes must be text", entity="job_record", field="notes")
    text = value.strip()
    if len(text) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters", entity="job_record", field="notes")
    return text or None


def _validate_photos(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValidationError("photos must be a list of URLs", entity="job_record", field="photos")
    if len(value) > MAX_PHOTOS:
        raise ValidationError(f"at most {MAX_PHOTOS} photos are allowed", entity="job_record", field="photos")
    photos: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip().startswith(("http://", "https://")):
            raise ValidationError("photos must be a list of URLs", entity="job_record", field="photos")
        photos.append(item.strip())
    return photos
