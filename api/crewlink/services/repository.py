from __future__ import annotations

import json
from collections.abc import Collection
from dataclasses import fields
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from crewlink.core.config import get_settings
from crewlink.services.models import (
    INVITATION_VIEW_STATUSES,
    InvitationRecord,
    JobRecord,
    NotificationRecord,
    ProjectRecord,
    SkillRecord,
)
from crewlink.services.store import InMemoryStore


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class EngagementRepository(Protocol):
    async def close(self) -> None: ...

    async def insert_project(self, project: ProjectRecord) -> ProjectRecord: ...

    async def get_project(self, project_id: str) -> ProjectRecord | None: ...

    async def list_projects(
        self, *, company_id: str, status: str | None, limit: int, offset: int
    ) -> list[ProjectRecord]: ...

    async def update_project(
        self,
        *,
        project_id: str,
        expected_statuses: Collection[str],
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> ProjectRecord | None: ...

    async def count_invitations_by_status(self, *, project_id: str, now: datetime) -> dict[str, int]: ...

    async def insert_invitation_if_absent(self, invitation: InvitationRecord) -> InvitationRecord | None: ...

    async def get_invitation(self, invitation_id: str) -> InvitationRecord | None: ...

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
    ) -> list[InvitationRecord]: ...

    async def cancel_invitation(
        self, *, invitation_id: str, company_id: str, cancelled_at: datetime
    ) -> InvitationRecord | None: ...

    async def reject_invitation(
        self, *, invitation_id: str, worker_id: str, note: str | None, responded_at: datetime
    ) -> InvitationRecord | None: ...

    async def accept_invitation(
        self,
        *,
        invitation_id: str,
        worker_id: str,
        note: str | None,
        responded_at: datetime,
        job: JobRecord,
    ) -> tuple[InvitationRecord, JobRecord] | None: ...

    async def get_job(self, job_id: str) -> JobRecord | None: ...

    async def list_jobs(
        self,
        *,
        company_id: str | None = None,
        worker_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[JobRecord]: ...

    async def update_job_status(
        self,
        *,
        job_id: str,
        from_status: str,
        to_status: str,
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> JobRecord | None: ...

    async def list_skills(self) -> list[SkillRecord]: ...

    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord: ...

    async def list_notifications(
        self,
        *,
        recipient_id: str,
        recipient_role: str,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]: ...

    async def count_unread_notifications(self, *, recipient_id: str, recipient_role: str) -> int: ...

    async def mark_notification_read(
        self, *, notification_id: str, recipient_id: str, recipient_role: str
    ) -> NotificationRecord | None: ...

    async def mark_all_notifications_read(self, *, recipient_id: str, recipient_role: str) -> int: ...


# Record field -> storage column. Only these fields may be written by partial updates.
PROJECT_COLUMNS: dict[str, str] = {
    "name": "name",
    "address": "address",
    "description": "description",
    "required_workers": "required_workers",
    "payment_type": "payment_type",
    "amount": "amount",
    "daily_wage": "daily_wage",
    "original_wage": "original_wage",
    "wage_unit": "wage_unit",
    "start_date": "start_date",
    "end_date": "end_date",
    "start_time": "start_time",
    "end_time": "end_time",
    "estimated_duration_days": "estimated_duration",
    "skill_ids": "skill_ids",
    "status": "status",
}
JOB_COLUMNS: dict[str, str] = {
    "check_in_time": "check_in_time",
    "start_work_time": "start_work_time",
    "complete_time": "complete_time",
    "complete_notes": "complete_notes",
    "photos": "complete_photos",
    "quality_rating": "quality_rating",
    "confirmation_notes": "confirmation_notes",
    "confirmed_at": "confirmed_at",
    "payment_method": "payment_method",
    "transaction_reference": "transaction_reference",
    "payment_notes": "payment_notes",
    "paid_amount": "paid_amount",
    "paid_at": "paid_at",
}
_JSON_COLUMNS = {"complete_photos"}

_PROJECT_SELECT = """
  id::text as id,
  company_id,
  name,
  address,
  description,
  required_workers,
  payment_type,
  amount,
  daily_wage,
  original_wage,
  wage_unit,
  start_date,
  end_date,
  start_time,
  end_time,
  estimated_duration,
  skill_ids,
  status,
  created_at,
  updated_at
"""
_INVITATION_SELECT = """
  id::text as id,
  project_id::text as project_id,
  company_id,
  worker_id,
  message,
  wage_amount,
  original_wage,
  wage_unit,
  payment_type,
  start_date,
  end_date,
  status,
  expires_at,
  response_note,
  invited_at,
  responded_at,
  updated_at
"""
_JOB_SELECT = """
  id::text as id,
  invitation_id::text as invitation_id,
  project_id::text as project_id,
  company_id,
  worker_id,
  wage_amount,
  original_wage,
  wage_unit,
  start_date,
  status,
  check_in_time,
  start_work_time,
  complete_time,
  complete_notes,
  complete_photos,
  quality_rating,
  confirmation_notes,
  confirmed_at,
  payment_method,
  transaction_reference,
  payment_notes,
  paid_amount,
  paid_at,
  created_at,
  updated_at
"""
_NOTIFICATION_SELECT = """
  id::text as id,
  recipient_id,
  recipient_role,
  type,
  title,
  payload,
  is_read,
  created_at
"""

DEFAULT_SKILLS: tuple[SkillRecord, ...] = (
    SkillRecord(id=1, name="general_labor", category="general"),
    SkillRecord(id=2, name="carpentry", category="construction"),
    SkillRecord(id=3, name="masonry", category="construction"),
    SkillRecord(id=4, name="electrical", category="installation"),
    SkillRecord(id=5, name="plumbing", category="installation"),
    SkillRecord(id=6, name="painting", category="finishing"),
    SkillRecord(id=7, name="welding", category="metalwork"),
    SkillRecord(id=8, name="cleaning", category="general"),
)


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def insert_project(self, project: ProjectRecord) -> ProjectRecord:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into projects (
              id,
              company_id,
              name,
              address,
              description,
              required_workers,
              payment_type,
              amount,
              daily_wage,
              original_wage,
              wage_unit,
              start_date,
              end_date,
              start_time,
              end_time,
              estimated_duration,
              skill_ids,
              status,
              created_at,
              updated_at
            )
            values (
              $1::uuid, $2, $3, $4, $5, $6, $7, $8, $9, $10,
              $11, $12, $13, $14, $15, $16, $17::int[], $18, $19, $20
            )
            returning {_PROJECT_SELECT}
            """,
            project.id,
            project.company_id,
            project.name,
            project.address,
            project.description,
            project.required_workers,
            project.payment_type,
            project.amount,
            project.daily_wage,
            project.original_wage,
            project.wage_unit,
            project.start_date,
            project.end_date,
            project.start_time,
            project.end_time,
            project.estimated_duration_days,
            list(project.skill_ids),
            project.status,
            project.created_at,
            project.updated_at,
        )
        return self._project_row_to_record(row)

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {_PROJECT_SELECT} from projects where id = $1::uuid",
                project_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._project_row_to_record(row) if row else None

    async def list_projects(
        self,
        *,
        company_id: str,
        status: str | None,
        limit: int,
        offset: int,
    ) -> list[ProjectRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_PROJECT_SELECT}
            from projects
            where company_id = $1
              and ($2::text is null or status = $2::text)
            order by created_at desc, id asc
            limit $3
            offset $4
            """,
            company_id,
            status,
            limit,
            offset,
        )
        return [self._project_row_to_record(row) for row in rows]

    async def update_project(
        self,
        *,
        project_id: str,
        expected_statuses: Collection[str],
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> ProjectRecord | None:
        pool = await self._get_pool()
        params: list[Any] = [project_id, list(expected_statuses), updated_at]
        assignments = ["updated_at = $3"]
        for key, value in changes.items():
            column = PROJECT_COLUMNS.get(key)
            if column is None:
                raise RepositoryError(f"unsupported project field: {key}")
            params.append(list(value) if column == "skill_ids" else value)
            cast = "::int[]" if column == "skill_ids" else ""
            assignments.append(f"{column} = ${len(params)}{cast}")

        try:
            row = await pool.fetchrow(
                f"""
                update projects
                set {", ".join(assignments)}
                where id = $1::uuid and status = any($2::text[])
                returning {_PROJECT_SELECT}
                """,
                *params,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._project_row_to_record(row) if row else None

    async def count_invitations_by_status(self, *, project_id: str, now: datetime) -> dict[str, int]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              case
                when status = 'pending' and expires_at is not null and expires_at < $2 then 'expired'
                else status
              end as view_status,
              count(*)::int as total
            from invitations
            where project_id = $1::uuid
            group by 1
            """,
            project_id,
            now,
        )
        counts = {status: 0 for status in INVITATION_VIEW_STATUSES}
        for row in rows:
            counts[row["view_status"]] = row["total"]
        return counts

    async def insert_invitation_if_absent(self, invitation: InvitationRecord) -> InvitationRecord | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into invitations (
              id,
              project_id,
              company_id,
              worker_id,
              message,
              wage_amount,
              original_wage,
              wage_unit,
              payment_type,
              start_date,
              end_date,
              status,
              expires_at,
              invited_at,
              updated_at
            )
            values ($1::uuid, $2::uuid, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            on conflict (project_id, worker_id) do nothing
            returning {_INVITATION_SELECT}
            """,
            invitation.id,
            invitation.project_id,
            invitation.company_id,
            invitation.worker_id,
            invitation.message,
            invitation.wage_amount,
            invitation.original_wage,
            invitation.wage_unit,
            invitation.payment_type,
            invitation.start_date,
            invitation.end_date,
            invitation.status,
            invitation.expires_at,
            invitation.invited_at,
            invitation.updated_at,
        )
        return self._invitation_row_to_record(row) if row else None

    async def get_invitation(self, invitation_id: str) -> InvitationRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"select {_INVITATION_SELECT} from invitations where id = $1::uuid",
                invitation_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._invitation_row_to_record(row) if row else None

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
        pool = await self._get_pool()
        conditions: list[str] = []
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if company_id is not None:
            conditions.append(f"company_id = {bind(company_id)}")
        if worker_id is not None:
            conditions.append(f"worker_id = {bind(worker_id)}")
        if project_id is not None:
            conditions.append(f"project_id = {bind(project_id)}::uuid")
        if status == "expired":
            conditions.append(f"status = 'pending' and expires_at is not null and expires_at < {bind(now)}")
        elif status == "pending":
            conditions.append(f"status = 'pending' and (expires_at is null or expires_at >= {bind(now)})")
        elif status:
            conditions.append(f"status = {bind(status)}")

        where_sql = " and ".join(conditions) if conditions else "true"
        limit_token = bind(limit)
        offset_token = bind(offset)

        try:
            rows = await pool.fetch(
                f"""
                select {_INVITATION_SELECT}
                from invitations
                where {where_sql}
                order by invited_at desc, id asc
                limit {limit_token}
                offset {offset_token}
                """,
                *params,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return []
        return [self._invitation_row_to_record(row) for row in rows]

    async def cancel_invitation(
        self,
        *,
        invitation_id: str,
        company_id: str,
        cancelled_at: datetime,
    ) -> InvitationRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update invitations
                set status = 'cancelled', updated_at = $3
                where id = $1::uuid and company_id = $2 and status = 'pending'
                returning {_INVITATION_SELECT}
                """,
                invitation_id,
                company_id,
                cancelled_at,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._invitation_row_to_record(row) if row else None

    async def reject_invitation(
        self,
        *,
        invitation_id: str,
        worker_id: str,
        note: str | None,
        responded_at: datetime,
    ) -> InvitationRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update invitations
                set
                  status = 'rejected',
                  response_note = $3,
                  responded_at = $4,
                  updated_at = $4
                where id = $1::uuid and worker_id = $2 and status = 'pending'
                returning {_INVITATION_SELECT}
                """,
                invitation_id,
                worker_id,
                note,
                responded_at,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._invitation_row_to_record(row) if row else None

    async def accept_invitation(
        self,
        *,
        invitation_id: str,
        worker_id: str,
        note: str | None,
        responded_at: datetime,
        job: JobRecord,
    ) -> tuple[InvitationRecord, JobRecord] | None:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    invitation_row = await conn.fetchrow(
                        f"""
                        update invitations
                        set
                          status = 'accepted',
                          response_note = $3,
                          responded_at = $4,
                          updated_at = $4
                        where id = $1::uuid and worker_id = $2 and status = 'pending'
                        returning {_INVITATION_SELECT}
                        """,
                        invitation_id,
                        worker_id,
                        note,
                        responded_at,
                    )
                    if not invitation_row:
                        return None

                    job_row = await conn.fetchrow(
                        f"""
                        insert into job_records (
                          id,
                          invitation_id,
                          project_id,
                          company_id,
                          worker_id,
                          wage_amount,
                          original_wage,
                          wage_unit,
                          start_date,
                          status,
                          complete_photos,
                          created_at,
                          updated_at
                        )
                        values ($1::uuid, $2::uuid, $3::uuid, $4, $5, $6, $7, $8, $9, $10, $11::jsonb, $12, $13)
                        returning {_JOB_SELECT}
                        """,
                        job.id,
                        job.invitation_id,
                        job.project_id,
                        job.company_id,
                        job.worker_id,
                        job.wage_amount,
                        job.original_wage,
                        job.wage_unit,
                        job.start_date,
                        job.status,
                        json.dumps(job.photos),
                        job.created_at,
                        job.updated_at,
                    )
                    return self._invitation_row_to_record(invitation_row), self._job_row_to_record(job_row)
        except pg_exc.UniqueViolationError:
            return None
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None

    async def get_job(self, job_id: str) -> JobRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(f"select {_JOB_SELECT} from job_records where id = $1::uuid", job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._job_row_to_record(row) if row else None

    async def list_jobs(
        self,
        *,
        company_id: str | None = None,
        worker_id: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[JobRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_JOB_SELECT}
            from job_records
            where ($1::text is null or company_id = $1::text)
              and ($2::text is null or worker_id = $2::text)
              and ($3::text is null or status = $3::text)
            order by created_at desc, id asc
            limit $4
            offset $5
            """,
            company_id,
            worker_id,
            status,
            limit,
            offset,
        )
        return [self._job_row_to_record(row) for row in rows]

    async def update_job_status(
        self,
        *,
        job_id: str,
        from_status: str,
        to_status: str,
        changes: dict[str, Any],
        updated_at: datetime,
    ) -> JobRecord | None:
        pool = await self._get_pool()
        params: list[Any] = [job_id, from_status, to_status, updated_at]
        assignments = ["status = $3", "updated_at = $4"]
        for key, value in changes.items():
            column = JOB_COLUMNS.get(key)
            if column is None:
                raise RepositoryError(f"unsupported job field: {key}")
            if column in _JSON_COLUMNS:
                params.append(json.dumps(value))
                assignments.append(f"{column} = ${len(params)}::jsonb")
            else:
                params.append(value)
                assignments.append(f"{column} = ${len(params)}")

        try:
            row = await pool.fetchrow(
                f"""
                update job_records
                set {", ".join(assignments)}
                where id = $1::uuid and status = $2
                returning {_JOB_SELECT}
                """,
                *params,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._job_row_to_record(row) if row else None

    async def list_skills(self) -> list[SkillRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch("select id, name, category from skills order by id asc")
        return [SkillRecord(id=row["id"], name=row["name"], category=row["category"]) for row in rows]

    async def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into notifications (id, recipient_id, recipient_role, type, title, payload, is_read, created_at)
            values ($1::uuid, $2, $3, $4, $5, $6::jsonb, $7, $8)
            returning {_NOTIFICATION_SELECT}
            """,
            notification.id,
            notification.recipient_id,
            notification.recipient_role,
            notification.type,
            notification.title,
            json.dumps(notification.payload, default=str),
            notification.read,
            notification.created_at,
        )
        return self._notification_row_to_record(row)

    async def list_notifications(
        self,
        *,
        recipient_id: str,
        recipient_role: str,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_NOTIFICATION_SELECT}
            from notifications
            where recipient_id = $1
              and recipient_role = $2
              and ($3::boolean = false or is_read = false)
            order by created_at desc, id asc
            limit $4
            offset $5
            """,
            recipient_id,
            recipient_role,
            unread_only,
            limit,
            offset,
        )
        return [self._notification_row_to_record(row) for row in rows]

    async def count_unread_notifications(self, *, recipient_id: str, recipient_role: str) -> int:
        pool = await self._get_pool()
        total = await pool.fetchval(
            """
            select count(*)::int
            from notifications
            where recipient_id = $1 and recipient_role = $2 and is_read = false
            """,
            recipient_id,
            recipient_role,
        )
        return int(total or 0)

    async def mark_notification_read(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        recipient_role: str,
    ) -> NotificationRecord | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update notifications
                set is_read = true
                where id = $1::uuid and recipient_id = $2 and recipient_role = $3
                returning {_NOTIFICATION_SELECT}
                """,
                notification_id,
                recipient_id,
                recipient_role,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None
        return self._notification_row_to_record(row) if row else None

    async def mark_all_notifications_read(self, *, recipient_id: str, recipient_role: str) -> int:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            update notifications
            set is_read = true
            where recipient_id = $1 and recipient_role = $2 and is_read = false
            returning id
            """,
            recipient_id,
            recipient_role,
        )
        return len(rows)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("CREWLINK_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _project_row_to_record(row: asyncpg.Record) -> ProjectRecord:
        return ProjectRecord(
            id=row["id"],
            company_id=row["company_id"],
            name=row["name"],
            address=row["address"],
            description=row["description"],
            required_workers=row["required_workers"],
            payment_type=row["payment_type"],
            amount=row["amount"],
            daily_wage=row["daily_wage"],
            original_wage=row["original_wage"],
            wage_unit=row["wage_unit"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            estimated_duration_days=row["estimated_duration"],
            skill_ids=list(row["skill_ids"] or []),
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _invitation_row_to_record(row: asyncpg.Record) -> InvitationRecord:
        names = {item.name for item in fields(InvitationRecord)}
        return InvitationRecord(**{key: row[key] for key in names})

    @staticmethod
    def _job_row_to_record(row: asyncpg.Record) -> JobRecord:
        photos = row["complete_photos"]
        if isinstance(photos, str):
            try:
                photos = json.loads(photos)
            except json.JSONDecodeError:
                photos = []
        return JobRecord(
            id=row["id"],
            invitation_id=row["invitation_id"],
            project_id=row["project_id"],
            company_id=row["company_id"],
            worker_id=row["worker_id"],
            wage_amount=row["wage_amount"],
            original_wage=row["original_wage"],
            wage_unit=row["wage_unit"],
            start_date=row["start_date"],
            status=row["status"],
            check_in_time=row["check_in_time"],
            start_work_time=row["start_work_time"],
            complete_time=row["complete_time"],
            complete_notes=row["complete_notes"],
            photos=[str(item) for item in photos or []],
            quality_rating=row["quality_rating"],
            confirmation_notes=row["confirmation_notes"],
            confirmed_at=row["confirmed_at"],
            payment_method=row["payment_method"],
            transaction_reference=row["transaction_reference"],
            payment_notes=row["payment_notes"],
            paid_amount=row["paid_amount"],
            paid_at=row["paid_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _notification_row_to_record(row: asyncpg.Record) -> NotificationRecord:
        payload = row["payload"]
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                payload = {}
        return NotificationRecord(
            id=row["id"],
            recipient_id=row["recipient_id"],
            recipient_role=row["recipient_role"],
            type=row["type"],
            title=row["title"],
            payload=payload if isinstance(payload, dict) else {},
            read=bool(row["is_read"]),
            created_at=row["created_at"],
        )


@lru_cache
def get_repository() -> EngagementRepository:
    settings = get_settings()
    if not settings.database_url:
        return InMemoryStore(skills=DEFAULT_SKILLS)
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
