from __future__ import annotations
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, func
from app.models.user import Base
from app.constants.lifecycle import RequestStatus, Priority


class MaintenanceRequest(Base):
    __tablename__ = 'maintenance_requests'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=Priority.MEDIUM, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=RequestStatus.INITIAL, index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey('categories.id'), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    building: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    specific_location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    requested_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    assigned_to_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    assigned_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    custom_identifier: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    estimated_cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    actual_cost: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    scheduled_date: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_date: Mapped[Optional[str]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    status_history: Mapped[List['RequestStatusHistory']] = relationship(
        back_populates='request', cascade='all, delete-orphan',
        order_by='RequestStatusHistory.id',
    )
    assignment_history: Mapped[List['RequestAssignmentHistory']] = relationship(
        back_populates='request', cascade='all, delete-orphan',
        order_by='RequestAssignmentHistory.id',
    )
    comments: Mapped[List['RequestComment']] = relationship(
        back_populates='request', cascade='all, delete-orphan',
        order_by='RequestComment.id',
    )

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_terminal(self) -> bool:
        return self.status in RequestStatus.TERMINAL


# Append-only: rows are inserted by the lifecycle services and never updated.
class RequestStatusHistory(Base):
    __tablename__ = 'request_status_history'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    from_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # None when the transition was made by a scheduled job
    changed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

    request = relationship('MaintenanceRequest', back_populates='status_history')


class RequestAssignmentHistory(Base):
    __tablename__ = 'request_assignment_history'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    from_technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    to_technician_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True)
    assignment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    assigned_by_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

    request = relationship('MaintenanceRequest', back_populates='assignment_history')


class RequestComment(Base):
    __tablename__ = 'request_comments'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('maintenance_requests.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # Staff-only note, never shown to customers
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    request = relationship('MaintenanceRequest', back_populates='comments')
