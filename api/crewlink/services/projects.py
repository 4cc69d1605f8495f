from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any

from opentelemetry import trace

from crewlink.core.auth import Principal
from crewlink.core.clock import Clock, SystemClock
from crewlink.services.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from crewlink.services.models import PROJECT_STATUSES, ProjectRecord, ProjectSummary
from crewlink.services.repository import EngagementRepository
from crewlink.services.skills import SkillCatalogCache
from crewlink.services.wages import HOURS_PER_WORKDAY, PAYMENT_TYPES, WageTerms, normalize_wage, window_days

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

PROJECT_TRANSITIONS: dict[str, set[str]] = {
    "draft": {"in_progress", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
EDITABLE_STATUSES = ("draft", "in_progress")
DERIVED_WAGE_FIELDS = {"daily_wage", "original_wage", "wage_unit"}
PROJECT_INPUT_FIELDS = {
    "name",
    "address",
    "description",
    "required_workers",
    "payment_type",
    "amount",
    "start_date",
    "end_date",
    "start_time",
    "end_time",
    "estimated_duration_days",
    "skills",
}
_WAGE_INPUTS = {"payment_type", "amount", "start_date", "end_date", "estimated_duration_days"}


class ProjectRegistry:
    def __init__(
        self,
        repository: EngagementRepository,
        *,
        clock: Clock | None = None,
        hours_per_workday: int = HOURS_PER_WORKDAY,
        skill_cache: SkillCatalogCache | None = None,
    ) -> None:
        self.repository = repository
        self.clock = clock or SystemClock()
        self.hours_per_workday = hours_per_workday
        self.skill_cache = skill_cache

    async def create_project(self, actor: Principal, payload: Mapping[str, Any]) -> ProjectRecord:
        """Validate ``payload``, derive the canonical wage and persist a draft Project."""
        if not actor.is_company:
            raise AuthorizationError("only companies can create projects", entity="project")
        self._reject_unknown_fields(payload)

        with tracer.start_as_current_span("projects.create"):
            fields = self._validate_fields(payload, partial=False)
            terms = self._derive_wage(fields)
            skill_ids = await self._resolve_skills(payload.get("skills"))
            now = self.clock.now()
            project = ProjectRecord(
                id=str(uuid.uuid4()),
                company_id=actor.subject,
                name=fields["name"],
                address=fields["address"],
                description=fields.get("description"),
                required_workers=fields["required_workers"],
                payment_type=fields["payment_type"],
                amount=terms.original_wage,
                daily_wage=terms.daily_wage,
                original_wage=terms.original_wage,
                wage_unit=terms.wage_unit,
                start_date=fields["start_date"],
                end_date=fields["end_date"],
                start_time=fields.get("start_time"),
                end_time=fields.get("end_time"),
                estimated_duration_days=fields.get("estimated_duration_days"),
                skill_ids=skill_ids,
                status="draft",
                created_at=now,
                updated_at=now,
            )
            created = await self.repository.insert_project(project)

        logger.info(
            "project created id=%s company=%s payment_type=%s daily_wage=%s",
            created.id,
            created.company_id,
            created.payment_type,
            created.daily_wage,
        )
        return created

    async def transition_status(self, project_id: str, new_status: str, actor: Principal) -> ProjectRecord:
        if new_status not in PROJECT_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(PROJECT_STATUSES)}",
                entity="project",
                entity_id=project_id,
                field="status",
            )
        current = await self._load_owned(project_id, actor)
        self._validate_project_transition(project_id=project_id, from_status=current.status, to_status=new_status)

        with tracer.start_as_current_span("projects.transition"):
            updated = await self.repository.update_project(
                project_id=project_id,
                expected_statuses=(current.status,),
                changes={"status": new_status},
                updated_at=self.clock.now(),
            )
        if updated is None:
            latest = await self.repository.get_project(project_id)
            if latest is None:
                raise NotFoundError("project not found", entity="project", entity_id=project_id)
            raise StateError(
                "project status changed concurrently",
                entity="project",
                entity_id=project_id,
                expected_state=current.status,
                current_state=latest.status,
            )

        logger.info("project transitioned id=%s from=%s to=%s", project_id, current.status, new_status)
        return updated

    async def get_project(self, project_id: str, actor: Principal | None = None) -> ProjectSummary:
        project = await self.repository.get_project(project_id)
        if project is None:
            raise NotFoundError("project not found", entity="project", entity_id=project_id)
        if actor is not None and actor.is_company and project.company_id != actor.subject:
            raise NotFoundError("project not found", entity="project", entity_id=project_id)
        counts = await self.repository.count_invitations_by_status(project_id=project_id, now=self.clock.now())
        return ProjectSummary(project=project, invitation_counts=counts)

    async def update_project(self, project_id: str, actor: Principal, changes: Mapping[str, Any]) -> ProjectRecord:
        """Edit a draft or in-progress Project; wage terms are recomputed.

        Invitations already sent keep the wage they were sent with.
        """
        self._reject_unknown_fields(changes)
        current = await self._load_owned(project_id, actor)
        if current.status not in EDITABLE_STATUSES:
            raise StateError(
                "project can no longer be edited",
                entity="project",
                entity_id=project_id,
                expected_state=list(EDITABLE_STATUSES),
                current_state=current.status,
            )

        fields = self._validate_fields(changes, partial=True)
        merged = {
            "payment_type": current.payment_type,
            "amount": current.amount,
            "start_date": current.start_date,
            "end_date": current.end_date,
            "estimated_duration_days": current.estimated_duration_days,
            **fields,
        }
        if merged["end_date"] < merged["start_date"]:
            raise ValidationError("end_date must not be before start_date", field="end_date")

        update = dict(fields)
        if _WAGE_INPUTS & fields.keys():
            terms = self._derive_wage(merged)
            update.update(
                amount=terms.original_wage,
                daily_wage=terms.daily_wage,
                original_wage=terms.original_wage,
                wage_unit=terms.wage_unit,
            )
        if "skills" in changes:
            update["skill_ids"] = await self._resolve_skills(changes.get("skills"))
        if not update:
            return current

        updated = await self.repository.update_project(
            project_id=project_id,
            expected_statuses=EDITABLE_STATUSES,
            changes=update,
            updated_at=self.clock.now(),
        )
        if updated is None:
            latest = await self.repository.get_project(project_id)
            raise StateError(
                "project can no longer be edited",
                entity="project",
                entity_id=project_id,
                expected_state=list(EDITABLE_STATUSES),
                current_state=latest.status if latest else None,
            )
        logger.info("project updated id=%s fields=%s", project_id, ",".join(sorted(update)))
        return updated

    async def list_projects(
        self,
        actor: Principal,
        *,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ProjectRecord]:
        if not actor.is_company:
            raise AuthorizationError("only companies can list projects", entity="project")
        if status is not None and status not in PROJECT_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PROJECT_STATUSES)}", field="status")
        return await self.repository.list_projects(
            company_id=actor.subject,
            status=status,
            limit=limit,
            offset=offset,
        )

    async def _load_owned(self, project_id: str, actor: Principal) -> ProjectRecord:
        project = await self.repository.get_project(project_id)
        if project is None:
            raise NotFoundError("project not found", entity="project", entity_id=project_id)
        if not actor.is_company or project.company_id != actor.subject:
            raise AuthorizationError(
                "only the owning company may modify this project",
                entity="project",
                entity_id=project_id,
            )
        return project

    def _derive_wage(self, fields: Mapping[str, Any]) -> WageTerms:
        duration = fields.get("estimated_duration_days")
        if fields["payment_type"] == "fixed" and duration is None:
            duration = window_days(fields["start_date"], fields["end_date"])
        return normalize_wage(
            fields["payment_type"],
            fields["amount"],
            duration,
            hours_per_workday=self.hours_per_workday,
        )

    async def _resolve_skills(self, names: Any) -> list[int]:
        if names is None:
            return []
        if isinstance(names, str) or not isinstance(names, (list, tuple)):
            raise ValidationError("skills must be a list of skill names", field="skills")
        if self.skill_cache is None:
            return []
        return await self.skill_cache.resolve_ids(str(name) for name in names)

    @staticmethod
    def _reject_unknown_fields(payload: Mapping[str, Any]) -> None:
        derived = sorted(DERIVED_WAGE_FIELDS & set(payload))
        if derived:
            raise ValidationError(
                f"{derived[0]} is derived and cannot be set directly",
                entity="project",
                field=derived[0],
            )
        unknown = sorted(set(payload) - PROJECT_INPUT_FIELDS)
        if unknown:
            raise ValidationError(f"unsupported project field: {unknown[0]}", entity="project", field=unknown[0])

    @staticmethod
    def _validate_fields(payload: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
        fields: dict[str, Any] = {}

        for key in ("name", "address"):
            if key in payload or not partial:
                fields[key] = _require_text(payload.get(key), field=key)
        if "description" in payload:
            fields["description"] = _optional_text(payload.get("description"))

        if "required_workers" in payload or not partial:
            fields["required_workers"] = _require_positive_int(payload.get("required_workers"), field="required_workers")

        if "payment_type" in payload or not partial:
            payment_type = payload.get("payment_type")
            if payment_type not in PAYMENT_TYPES:
                raise ValidationError(
                    f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}",
                    entity="project",
                    field="payment_type",
                )
            fields["payment_type"] = payment_type
        if "amount" in payload or not partial:
            if payload.get("amount") is None:
                raise ValidationError("amount is required", entity="project", field="amount")
            fields["amount"] = payload.get("amount")

        for key in ("start_date", "end_date"):
            if key in payload or not partial:
                fields[key] = _require_date(payload.get(key), field=key)
        if "start_date" in fields and "end_date" in fields and fields["end_date"] < fields["start_date"]:
            raise ValidationError("end_date must not be before start_date", entity="project", field="end_date")

        for key in ("start_time", "end_time"):
            if key in payload:
                fields[key] = _optional_time(payload.get(key), field=key)

        if "estimated_duration_days" in payload:
            raw = payload.get("estimated_duration_days")
            fields["estimated_duration_days"] = (
                None if raw is None else _require_positive_int(raw, field="estimated_duration_days")
            )
        return fields

    @staticmethod
    def _validate_project_transition(*, project_id: str, from_status: str, to_status: str) -> None:
        allowed = PROJECT_TRANSITIONS.get(from_status, set())
        if to_status not in allowed:
            raise StateError(
                f"invalid project transition: {from_status} -> {to_status}",
                entity="project",
                entity_id=project_id,
                expected_state=sorted(status for status, targets in PROJECT_TRANSITIONS.items() if to_status in targets),
                current_state=from_status,
            )


def _require_text(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", entity="project", field=field)
    return value.strip()


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer", entity="project", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a positive integer", entity="project", field=field) from exc
    if number < 1 or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be a positive integer", entity="project", field=field)
    return number


def _require_date(value: Any, *, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO date", entity="project", field=field) from exc
    raise ValidationError(f"{field} is required", entity="project", field=field)


def _optional_time(value: Any, *, field: str) -> time | None:
    if value is None or isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field} must be an ISO time", entity="project", field=field) from exc
    raise ValidationError(f"{field} must be an ISO time", entity="project", field=field)
