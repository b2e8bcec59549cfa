# app/audit/models.py
from pydantic import BaseModel, ConfigDict


class AuditEvent(BaseModel):
    """One finished HTTP exchange, ready to be written as a form submission.

    Bodies are already redacted/truncated and serialized; the timestamp is
    assigned by the database when the row is inserted.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int | None = None
    route: str
    method: str
    status_code: int
    request_body: str | None = None
    request_query: str | None = None
    response_body: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    email: str | None = None
