from fastapi import APIRouter

from crewlink.api.routes import health, invitations, jobs, notifications, projects

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(invitations.router, prefix="/invitations", tags=["invitations"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
