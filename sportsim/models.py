"""Database models using SQLModel."""

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueEntry(SQLModel, table=True):
    """Opaque key-value row backing the credential store."""

    __tablename__ = "kv_entries"

    key: str = Field(primary_key=True, max_length=255)
    value: str = Field(description="Opaque string value (JSON for structured data)")
    updated_at: datetime = Field(default_factory=_utcnow)
