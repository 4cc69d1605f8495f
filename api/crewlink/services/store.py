from __future__ import annotations

import copy
from collections.abc import Collection, Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any, TypeVar

from crewlink.services.models import (
    INVITATION_VIEW_STATUSES,
    InvitationRecord,
    JobRecord,
    NotificationRecord,
    ProjectRecord,
    SkillRecord,
)

T = TypeVar("T")


class InMemoryStore:
    """Process-local repository for tests and database-less development.

    Each conditional write runs to completion without awaiting, so on a single
    event loop no other coroutine can observe or interleave with a half-applied
    change.
    """

    def __init__(self, skills: Iterable[SkillRecord] | None = None) -> None:
        self.projects: dict[str, ProjectRecord] = {}
        self.invitations: dict[str, InvitationRecord] = {}
        self.invitation_keys: dict[tuple[str, str], str] = {}
        self.jobs: dict[str, JobRecord] = {}
        self.job_by_invitation: dict[str, str] = {}
        self.notifications: dict[str, NotificationRecord] = {}
        self.skills: list[SkillRecord] = list(skills or [])
        self.skill_loads = 0

    async def close(self) -> None:
        return None

    async def insert_project(self, project: ProjectRecord) -> ProjectRecord:
        self.projects[project.id] = _clone(project)
        return _clone(project)

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        project = self.projects.get(project_id)
        return _clone(project) if project else None

    async def list_projects(
        self,
        *,
        company_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[ProjectRecord]:
        rows = [row for row in self.projects.values() if row.company_id == company_id]
        if status:
            rows = [row for row in rows if row.status == status]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return [_clone(row) for row in rows[offset : offset + limit]]

    async def update_project(
        self,
        *,
        project_id: str,
        expected_statuses: Collection[str],
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> ProjectRecord | None:
        current = self.projects.get(project_id)
        if current is None or current.status not in expected_statuses:
            return None
        updated = replace(current, **changes, updated_at=updated_at)
        self.projects[project_id] = updated
        return _clone(updated)

    async def count_invitations_by_status(self, *, project_id: str, now: datetime) -> dict[str, int]:
        counts = {status: 0 for status in INVITATION_VIEW_STATUSES}
        for row in self.invitations.values():
            if row.project_id == project_id:
                counts[row.effective_status(now)] += 1
        return counts

    async def insert_invitation_if_absent(self, invitation: InvitationRecord) -> InvitationRecord | None:
        key = (invitation.project_id, invitation.worker_id)
        if key in self.invitation_keys:
            return None
        self.invitation_keys[key] = invitation.id
        self.invitations[invitation.id] = _clone(invitation)
        return _clone(invitation)

    async def get_invitation(self, invitation_id: str) -> InvitationRecord | None:
        invitation = self.invitations.get(invitation_id)
        return _clone(invitation) if invitation else None

    async def list_invitations(
        self,
        *,
        company_id: str | None = None,
        worker_id: str | None = None,
        project_id: str | None = None,
        status: str | None = None,
        now: datetime,
        limit: int = 100,
        offset: int = 0,
    ) -> list[InvitationRecord]:
        rows = list(self.invitations.values())
        if company_id is not None:
            rows = [row for row in rows if row.company_id == company_id]
        if worker_id is not None:
            rows = [row for row in rows if row.worker_id == worker_id]
        if project_id is not None:
            rows = [row for row in rows if row.project_id == project_id]
        if status:
            rows = [row for row in rows if row.effective_status(now) == status]
        rows.sort(key=lambda row: row.invited_at, reverse=True)
        return [_clone(row) for row in rows[offset : offset + limit]]

    async def cancel_invitation(
        self,
        *,
        invitation_id: str,
        company_id: str,
        cancelled_at: datetime,
    ) -> InvitationRecord | None:
        current = self.invitations.get(invitation_id)
        if current is None or current.company_id != company_id or current.status != "pending":
            return None
        updated = replace(current, status="cancelled", updated_at=cancelled_at)
        self.invitations[invitation_id] = updated
        return _clone(updated)

    async def reject_invitation(
        self,
        *,
        invitation_id: str,
        worker_id: str,
        note: str | None,
        responded_at: datetime,
    ) -> InvitationRecord | None:
        current = self.invitations.get(invitation_id)
        if current is None or current.worker_id != worker_id or current.status != "pending":
            return None
        updated = replace(
            current,
            status="rejected",
            response_note=note,
            responded_at=responded_at,
            updated_at=responded_at,
        )
        self.invitations[invitation_id] = updated
        return _clone(updated)

    async def accept_invitation(
        self,
        *,
        invitation_id: str,
        worker_id: str,
        note: str | None,
        responded_at: datetime,
        job: JobRecord,
    ) -> tuple[InvitationRecord, JobRecord] | None:
        current = self.invitations.get(invitation_id)
        if current is None or current.worker_id != worker_id or current.status != "pending":
            return None
        if invitation_id in self.job_by_invitation:
            return None
        updated = replace(
            current,
            status="accepted",
            response_note=note,
            responded_at=responded_at,
            updated_at=responded_at,
        )
        self.invitations[invitation_id] = updated
        self.jobs[job.id] = _clone(job)
        self.job_by_invitation[invitation_id] = job.id
        return _clone(updated), _clone(job)

    async def get_job(self, job_id: str) -> JobRecord | None:
        job = self.jobs.get(job_id)
        return _clone(job) if job else None

    async def list_jobs(
        self,
        *,
        company_id: str | None = None,
        worker_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[JobRecord]:
        rows = list(self.jobs.values())
        if company_id is not None:
            rows = [row for row in rows if row.company_id == company_id]
        if worker_id is not None:
            rows = [row for row in rows if row.worker_id == worker_id]
        if status:
            rows = [row for row in rows if row.status == status]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return [_clone(row) for row in rows[offset : offset + limit]]

    async def update_job_status(
        self,
        *,
        job_id: str,
        from_status: str,
        to_status: str,
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> JobRecord | None:
        current = self.jobs.get(job_id)
        if current is None or current.status != from_status:
            return None
        updated = replace(current, **changes, status=to_status, updated_at=updated_at)
        self.jobs[job_id] = updated
        return _clone(updated)

    async def list_skills(self) -> list[SkillRecord]:
        self.skill_loads += 1
        return [_clone(skill) for skill in self.skills]

    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        self.notifications[notification.id] = _clone(notification)
        return _clone(notification)

    async def list_notifications(
        self,
        *,
        recipient_id: str,
        recipient_role: str,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        rows = [
            row
            for row in self.notifications.values()
            if row.recipient_id == recipient_id and row.recipient_role == recipient_role
        ]
        if unread_only:
            rows = [row for row in rows if not row.read]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return [_clone(row) for row in rows[offset : offset + limit]]

    async def count_unread_notifications(self, *, recipient_id: str, recipient_role: str) -> int:
        return sum(
            1
            for row in self.notifications.values()
            if row.recipient_id == recipient_id and row.recipient_role == recipient_role and not row.read
        )

    async def mark_notification_read(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        recipient_role: str,
    ) -> NotificationRecord | None:
        current = self.notifications.get(notification_id)
        if current is None or current.recipient_id != recipient_id or current.recipient_role != recipient_role:
            return None
        current.read = True
        return _clone(current)

    async def mark_all_notifications_read(self, *, recipient_id: str, recipient_role: str) -> int:
        marked = 0
        for row in self.notifications.values():
            if row.recipient_id == recipient_id and row.recipient_role == recipient_role and not row.read:
                row.read = True
                marked += 1
        return marked


def _clone(record: T) -> T:
    return copy.deepcopy(record)
