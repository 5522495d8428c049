from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class Garage(Base):
    __tablename__ = "garages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now()
    )


class GarageSettings(Base):
    __tablename__ = "garage_settings"

    garage_id: Mapped[str] = mapped_column(String(36), ForeignKey("garages.id"), primary_key=True)
    # NULL means unlimited
    ai_monthly_quota: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )


class AiUsage(Base):
    __tablename__ = "ai_usage"

    garage_id: Mapped[str] = mapped_column(String(36), ForeignKey("garages.id"), primary_key=True)
    period: Mapped[str] = mapped_column(String(7), primary_key=True)  # YYYY-MM
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )


class AiEvent(Base):
    __tablename__ = "ai_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    garage_id: Mapped[str] = mapped_column(String(36), ForeignKey("garages.id"), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, default=None)
    feature: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # success, error
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    tokens_in: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)
    tokens_out: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now()
    )


class GarageFeatureFlag(Base):
    __tablename__ = "garage_feature_flags"

    garage_id: Mapped[str] = mapped_column(String(36), ForeignKey("garages.id"), primary_key=True)
    feature_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )


class AdminAuditLog(Base):
    __tablename__ = "admin_audit_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    admin_user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, default=None)
    entity_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True, default=None)
    ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True, default=None)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now()
    )


# Indexes for performance
Index("idx_ai_usage_period", AiUsage.period)
Index("idx_ai_events_garage_created", AiEvent.garage_id, AiEvent.created_at)
Index("idx_admin_audit_log_created_at", AdminAuditLog.created_at)
