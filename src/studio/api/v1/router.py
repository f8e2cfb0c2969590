"""Primary API router definition."""

from fastapi import APIRouter

from . import classes, organizations, students, templates, transactions

api_router = APIRouter()

api_router.include_router(organizations.router)
api_router.include_router(organizations.settings_router)
api_router.include_router(students.router)
api_router.include_router(classes.router)
api_router.include_router(classes.attendees_router)
api_router.include_router(templates.router)
api_router.include_router(transactions.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic health probe endpoint."""
    return {"status": "ok"}
