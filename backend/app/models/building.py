from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, DateTime, func
from app.models.user import Base


class BuildingConfig(Base):
    __tablename__ = 'building_configs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    building_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    building_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    current_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reset_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    allow_custom_id: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    # Every UPDATE is "WHERE version = <read value>"; a racing writer gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {'version_id_col': version}


class RequestIdentifier(Base):
    __tablename__ = 'request_identifiers'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    identifier: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    building: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # 0 marks an admin-supplied identifier
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    custom_pattern: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    custom_sequence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())
