from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from opentelemetry import trace

from crewlink.core.auth import Principal
from crewlink.core.clock import Clock, SystemClock
from crewlink.services import events
from crewlink.services.errors import (
    AuthorizationError,
    ConflictError,
    EngagementError,
    NotFoundError,
    StateError,
    ValidationError,
)
from crewlink.services.events import EngagementEvent, EventBus
from crewlink.services.models import (
    INVITATION_VIEW_STATUSES,
    BatchInviteResult,
    InvitationRecord,
    ProjectRecord,
)
from crewlink.services.repository import EngagementRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

INVITABLE_PROJECT_STATUSES = ("draft", "in_progress")
WORKER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$")


class InvitationDispatcher:
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

    async def invite_workers(
        self,
        project_id: str,
        worker_ids: Iterable[str],
        actor: Principal,
        *,
        message: str | None = None,
        expires_at: datetime | None = None,
    ) -> BatchInviteResult:
        """Invite each worker independently and report every outcome.

        A worker that already holds an Invitation for the Project is skipped;
        a malformed worker id is reported as failed. Neither stops the batch.
        """
        project = await self._load_invitable_project(project_id, actor)
        expires_at = self._validate_expiry(expires_at)
        result = BatchInviteResult()

        with tracer.start_as_current_span("invitations.invite_batch") as span:
            for raw_worker_id in worker_ids:
                try:
                    worker_id = self._validate_worker_id(raw_worker_id)
                    created = await self._create(project, worker_id, message=message, expires_at=expires_at)
                except EngagementError as exc:
                    result.failed.append({"worker_id": str(raw_worker_id), "error": exc.message})
                    continue
                if created is None:
                    result.skipped.append(worker_id)
                else:
                    result.created.append(created)
            span.set_attribute("invitations.created", len(result.created))
            span.set_attribute("invitations.skipped", len(result.skipped))
            span.set_attribute("invitations.failed", len(result.failed))

        logger.info(
            "invitations dispatched project=%s created=%s skipped=%s failed=%s",
            project_id,
            len(result.created),
            len(result.skipped),
            len(result.failed),
        )
        return result

    async def invite_worker(
        self,
        project_id: str,
        worker_id: str,
        actor: Principal,
        *,
        message: str | None = None,
        expires_at: datetime | None = None,
    ) -> InvitationRecord:
        project = await self._load_invitable_project(project_id, actor)
        expires_at = self._validate_expiry(expires_at)
        worker_id = self._validate_worker_id(worker_id)
        created = await self._create(project, worker_id, message=message, expires_at=expires_at)
        if created is None:
            raise ConflictError(
                "worker already invited to this project",
                entity="invitation",
                field="worker_id",
            )
        return created

    async def cancel_invitation(self, invitation_id: str, actor: Principal) -> InvitationRecord:
        current = await self.repository.get_invitation(invitation_id)
        if current is None:
            raise NotFoundError("invitation not found", entity="invitation", entity_id=invitation_id)
        if not actor.is_company or current.company_id != actor.subject:
            raise AuthorizationError(
                "only the inviting company may cancel this invitation",
                entity="invitation",
                entity_id=invitation_id,
            )
        if current.status != "pending":
            raise StateError(
                "invitation can only be cancelled while pending",
                entity="invitation",
                entity_id=invitation_id,
                expected_state="pending",
                current_state=current.status,
            )

        cancelled = await self.repository.cancel_invitation(
            invitation_id=invitation_id,
            company_id=actor.subject,
            cancelled_at=self.clock.now(),
        )
        if cancelled is None:
            latest = await self.repository.get_invitation(invitation_id)
            raise StateError(
                "invitation can only be cancelled while pending",
                entity="invitation",
                entity_id=invitation_id,
                expected_state="pending",
                current_state=latest.status if latest else None,
            )

        self.events.publish(
            EngagementEvent(
                type=events.INVITATION_CANCELLED,
                recipient_id=cancelled.worker_id,
                recipient_role="worker",
                payload={"invitation_id": cancelled.id, "project_id": cancelled.project_id},
                occurred_at=cancelled.updated_at,
            )
        )
        logger.info("invitation cancelled id=%s project=%s", cancelled.id, cancelled.project_id)
        return cancelled

    async def get_invitation(self, invitation_id: str, actor: Principal) -> InvitationRecord:
        invitation = await self.repository.get_invitation(invitation_id)
        if invitation is None or not _is_party(invitation, actor):
            raise NotFoundError("invitation not found", entity="invitation", entity_id=invitation_id)
        return invitation

    async def list_invitations(
        self,
        actor: Principal,
        *,
        project_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[InvitationRecord]:
        if status is not None and status not in INVITATION_VIEW_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(INVITATION_VIEW_STATUSES)}",
                entity="invitation",
                field="status",
            )
        return await self.repository.list_invitations(
            company_id=actor.subject if actor.is_company else None,
            worker_id=actor.subject if actor.is_worker else None,
            project_id=project_id,
            status=status,
            now=self.clock.now(),
            limit=limit,
            offset=offset,
        )

    async def _create(
        self,
        project: ProjectRecord,
        worker_id: str,
        *,
        message: str | None,
        expires_at: datetime | None,
    ) -> InvitationRecord | None:
        now = self.clock.now()
        invitation = InvitationRecord(
            id=str(uuid.uuid4()),
            project_id=project.id,
            company_id=project.company_id,
            worker_id=worker_id,
            message=message,
            wage_amount=project.daily_wage,
            original_wage=project.original_wage,
            wage_unit=project.wage_unit,
            payment_type=project.payment_type,
            start_date=project.start_date,
            end_date=project.end_date,
            status="pending",
            expires_at=expires_at,
            invited_at=now,
            updated_at=now,
        )
        created = await self.repository.insert_invitation_if_absent(invitation)
        if created is None:
            return None

        self.events.publish(
            EngagementEvent(
                type=events.INVITATION_RECEIVED,
                recipient_id=worker_id,
                recipient_role="worker",
                payload={
                    "invitation_id": created.id,
                    "project_id": project.id,
                    "project_name": project.name,
                    "wage_amount": str(created.wage_amount),
                    "wage_unit": created.wage_unit,
                },
                occurred_at=now,
            )
        )
        return created

    async def _load_invitable_project(self, project_id: str, actor: Principal) -> ProjectRecord:
        project = await self.repository.get_project(project_id)
        if project is None:
            raise NotFoundError("project not found", entity="project", entity_id=project_id)
        if not actor.is_company or project.company_id != actor.subject:
            raise AuthorizationError(
                "only the owning company may invite workers",
                entity="project",
                entity_id=project_id,
            )
        if project.status not in INVITABLE_PROJECT_STATUSES:
            raise StateError(
                "project is not accepting invitations",
                entity="project",
                entity_id=project_id,
                expected_state=list(INVITABLE_PROJECT_STATUSES),
                current_state=project.status,
            )
        return project

    def _validate_expiry(self, expires_at: datetime | None) -> datetime | None:
        if expires_at is None:
            return None
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= self.clock.now():
            raise ValidationError("expires_at must be in the future", entity="invitation", field="expires_at")
        return expires_at

    @staticmethod
    def _validate_worker_id(value: object) -> str:
        if not isinstance(value, str) or not WORKER_ID_RE.match(value.strip()):
            raise ValidationError("invalid worker id", entity="invitation", field="worker_id")
        return value.strip()


def _is_party(invitation: InvitationRecord, actor: Principal) -> bool:
    if actor.is_company:
        return invitation.company_id == actor.subject
    return invitation.worker_id == actor.subject
