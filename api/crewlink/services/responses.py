from __future__ import annotations

import logging
import uuid

from opentelemetry import trace

from crewlink.core.auth import Principal
from crewlink.core.clock import Clock, SystemClock
from crewlink.services import events
from crewlink.services.errors import (
    AuthorizationError,
    ExpiredError,
    NotFoundError,
    StateError,
    ValidationError,
)
from crewlink.services.events import EngagementEvent, EventBus
from crewlink.services.models import InvitationRecord, JobRecord, ResponseOutcome
from crewlink.services.repository import EngagementRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DECISIONS = ("accepted", "rejected")


class ResponseProcessor:
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

    async def respond(
        self,
        invitation_id: str,
        actor: Principal,
        decision: str,
        note: str | None = None,
    ) -> ResponseOutcome:
        """Record a worker's answer to an Invitation.

        Accepting moves the Invitation out of ``pending`` and creates its
        JobRecord in a single atomic write. Of two concurrent responses only
        one can win; the other fails with ``StateError``. Only the invited
        worker may answer; ``actor.subject`` is matched against the
        Invitation's worker id.
        """
        if decision not in DECISIONS:
            raise ValidationError(
                f"decision must be one of: {', '.join(DECISIONS)}",
                entity="invitation",
                entity_id=invitation_id,
                field="decision",
            )
        if not actor.is_worker:
            raise AuthorizationError(
                "only the invited worker can respond",
                entity="invitation",
                entity_id=invitation_id,
            )
        worker_id = actor.subject

        invitation = await self.repository.get_invitation(invitation_id)
        if invitation is None or invitation.worker_id != worker_id:
            raise NotFoundError("invitation not found", entity="invitation", entity_id=invitation_id)
        if invitation.status != "pending":
            raise StateError(
                "invitation already processed",
                entity="invitation",
                entity_id=invitation_id,
                expected_state="pending",
                current_state=invitation.status,
            )
        now = self.clock.now()
        if invitation.is_expired(now):
            raise ExpiredError(
                "invitation has expired",
                entity="invitation",
                entity_id=invitation_id,
                current_state="expired",
            )

        with tracer.start_as_current_span("invitations.respond") as span:
            span.set_attribute("invitation.decision", decision)
            if decision == "accepted":
                outcome = await self._accept(invitation, note=note)
            else:
                outcome = await self._reject(invitation, note=note)

        self.events.publish(
            EngagementEvent(
                type=events.INVITATION_ACCEPTED if decision == "accepted" else events.INVITATION_REJECTED,
                recipient_id=invitation.company_id,
                recipient_role="company",
                payload={
                    "invitation_id": invitation.id,
                    "project_id": invitation.project_id,
                    "worker_id": worker_id,
                    "decision": decision,
                    "note": note,
                    "job_id": outcome.job_record.id if outcome.job_record else None,
                },
                occurred_at=outcome.invitation.responded_at,
            )
        )
        logger.info(
            "invitation answered id=%s worker=%s decision=%s",
            invitation.id,
            worker_id,
            decision,
        )
        return outcome

    async def _accept(self, invitation: InvitationRecord, *, note: str | None) -> ResponseOutcome:
        now = self.clock.now()
        project = await self.repository.get_project(invitation.project_id)
        job = JobRecord(
            id=str(uuid.uuid4()),
            invitation_id=invitation.id,
            project_id=invitation.project_id,
            company_id=invitation.company_id,
            worker_id=invitation.worker_id,
            wage_amount=invitation.wage_amount,
            original_wage=invitation.original_wage,
            wage_unit=invitation.wage_unit,
            start_date=project.start_date if project else invitation.start_date,
            status="active",
            created_at=now,
            updated_at=now,
        )
        accepted = await self.repository.accept_invitation(
            invitation_id=invitation.id,
            worker_id=invitation.worker_id,
            note=note,
            responded_at=now,
            job=job,
        )
        if accepted is None:
            raise await self._lost_race(invitation.id)
        updated, job_record = accepted
        return ResponseOutcome(invitation=updated, job_record=job_record)

    async def _reject(self, invitation: InvitationRecord, *, note: str | None) -> ResponseOutcome:
        updated = await self.repository.reject_invitation(
            invitation_id=invitation.id,
            worker_id=invitation.worker_id,
            note=note,
            responded_at=self.clock.now(),
        )
        if updated is None:
            raise await self._lost_race(invitation.id)
        return ResponseOutcome(invitation=updated)

    async def _lost_race(self, invitation_id: str) -> StateError:
        latest = await self.repository.get_invitation(invitation_id)
        return StateError(
            "invitation already processed",
            entity="invitation",
            entity_id=invitation_id,
            expected_state="pending",
            current_state=latest.status if latest else None,
        )
