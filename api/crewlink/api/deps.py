from fastapi import Depends, Request

from crewlink.core.clock import Clock, get_clock
from crewlink.core.config import Settings, get_settings
from crewlink.services.events import EventBus
from crewlink.services.invitations import InvitationDispatcher
from crewlink.services.lifecycle import JobLifecycleController
from crewlink.services.projects import ProjectRegistry
from crewlink.services.repository import get_repository
from crewlink.services.responses import ResponseProcessor
from crewlink.services.skills import SkillCatalogCache


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_skill_cache(request: Request) -> SkillCatalogCache:
    return request.app.state.skill_cache


def get_project_registry(
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    skill_cache: SkillCatalogCache = Depends(get_skill_cache),
) -> ProjectRegistry:
    return ProjectRegistry(
        repository,
        clock=clock,
        hours_per_workday=settings.hours_per_workday,
        skill_cache=skill_cache,
    )


def get_invitation_dispatcher(
    repository=Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
    clock: Clock = Depends(get_clock),
) -> InvitationDispatcher:
    return InvitationDispatcher(repository, events=events, clock=clock)


def get_response_processor(
    repository=Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
    clock: Clock = Depends(get_clock),
) -> ResponseProcessor:
    return ResponseProcessor(repository, events=events, clock=clock)


def get_lifecycle_controller(
    repository=Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
    clock: Clock = Depends(get_clock),
) -> JobLifecycleController:
    return JobLifecycleController(repository, events=events, clock=clock)
