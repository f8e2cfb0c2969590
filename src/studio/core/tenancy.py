"""Row-level security context for PostgreSQL."""

from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session


def set_organization_context(session: Session, organization_id: UUID) -> None:
    """Scope row-level security policies to ``organization_id`` for the connection.

    Other dialects have no such setting; queries still filter by organization
    explicitly everywhere.
    """

    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(
        text("SELECT set_config('app.organization_id', :organization_id, false)"),
        {"organization_id": str(organization_id)},
    )
