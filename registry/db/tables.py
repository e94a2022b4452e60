"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in registry/models/.
Repos convert between rows and dataclasses.  None of these tables has a
delete path: records, memberships history (via events) and the event
chain persist indefinitely.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from registry.db.engine import Base


class RecordRow(Base):
    __tablename__ = "records"

    record_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    issuer: Mapped[str] = mapped_column(String(320), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    issued_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class RoleMembershipRow(Base):
    __tablename__ = "role_memberships"

    identity: Mapped[str] = mapped_column(String(320), primary_key=True)
    role: Mapped[str] = mapped_column(
        String(32), primary_key=True
    )  # owner|issuer|admin|faculty|department
    granted_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (Index("ix_role_memberships_role", "role"),)


class RegistryEventRow(Base):
    __tablename__ = "registry_events"

    seq: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    record_id: Mapped[str | None] = mapped_column(String(66), nullable=True, index=True)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    prev_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    digest: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
