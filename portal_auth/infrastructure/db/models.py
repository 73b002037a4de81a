# caminho: portal_auth/infrastructure/db/models.py
# Funções:
# - Declarar modelos SQLAlchemy (AdminUserModel, AdminSessionModel, AdminAuditLogModel)

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_auth.infrastructure.db.base import Base


def _new_id() -> str:
    return str(uuid4())


class AdminUserModel(Base):
    __tablename__ = 'admin_users'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(254), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    totp_secret: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    totp_enabled: Mapped[bool] = mapped_column(Boolean, server_default=text('false'), default=False, nullable=False)
    failed_login_count: Mapped[int] = mapped_column(Integer, server_default=text('0'), default=0, nullable=False)
    lock_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default=text('true'), default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    sessions: Mapped[list['AdminSessionModel']] = relationship(
        'AdminSessionModel',
        back_populates='admin',
        cascade='all,delete-orphan',
    )


class AdminSessionModel(Base):
    __tablename__ = 'admin_sessions'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    admin_id: Mapped[str] = mapped_column(ForeignKey('admin_users.id', ondelete='CASCADE'), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    admin: Mapped['AdminUserModel'] = relationship('AdminUserModel', back_populates='sessions')

    __table_args__ = (Index('ix_admin_sessions_admin_status', 'admin_id', 'status'),)


class AdminAuditLogModel(Base):
    __tablename__ = 'admin_audit_logs'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[Optional[str]] = mapped_column(ForeignKey('admin_users.id', ondelete='SET NULL'), nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[Optional[dict[str, Any]]] = mapped_column('metadata', JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
