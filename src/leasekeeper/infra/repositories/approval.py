"""SQLModel implementation of the approval request repository."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ...errors import ConflictError, NotFoundError
from ...models.approval import PaymentApprovalRequest
from ..database import store_errors

PENDING = "pending"


class SQLModelApprovalRepository:
    """SQLModel-based approval request repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, approval_id: str) -> Optional[PaymentApprovalRequest]:
        """Retrieve a request by ID."""
        with store_errors(), self.session_factory() as session:
            return session.get(PaymentApprovalRequest, approval_id)

    def get_pending_for(
        self, schedule_id: str, month_key: str
    ) -> Optional[PaymentApprovalRequest]:
        """Retrieve the pending request for one obligation, if any."""
        with store_errors(), self.session_factory() as session:
            statement = (
                select(PaymentApprovalRequest)
                .where(PaymentApprovalRequest.schedule_id == schedule_id)
                .where(PaymentApprovalRequest.month_key == month_key)
                .where(PaymentApprovalRequest.status == PENDING)
            )
            return session.exec(statement).first()

    def list_pending(self) -> list[PaymentApprovalRequest]:
        """List pending requests, oldest first."""
        with store_errors(), self.session_factory() as session:
            statement = (
                select(PaymentApprovalRequest)
                .where(PaymentApprovalRequest.status == PENDING)
                .order_by(PaymentApprovalRequest.edited_at)  # type: ignore
            )
            return list(session.exec(statement).all())

    def count_pending(self, *, since: Optional[datetime] = None) -> int:
        """Count pending requests, optionally only those edited since *since*."""
        with store_errors(), self.session_factory() as session:
            statement = (
                select(func.count())
                .select_from(PaymentApprovalRequest)
                .where(PaymentApprovalRequest.status == PENDING)
            )
            if since is not None:
                statement = statement.where(PaymentApprovalRequest.edited_at >= since)
            return int(session.exec(statement).one())

    def create(self, request: PaymentApprovalRequest) -> PaymentApprovalRequest:
        """Insert a new request; ConflictError if the obligation already has a pending one."""
        try:
            with store_errors(), self.session_factory() as session:
                session.add(request)
                session.commit()
                session.refresh(request)
        except IntegrityError as exc:
            raise ConflictError(
                f"An edit of {request.month_key} is already awaiting approval"
            ) from exc
        return request

    def mark_reviewed(self, request: PaymentApprovalRequest) -> PaymentApprovalRequest:
        """Record a decision; ConflictError if the request is no longer pending."""
        with store_errors(), self.session_factory() as session:
            statement = (
                update(PaymentApprovalRequest)
                .where(PaymentApprovalRequest.id == request.id)
                .where(PaymentApprovalRequest.status == PENDING)
                .values(
                    status=request.status,
                    reviewed_by=request.reviewed_by,
                    reviewed_at=request.reviewed_at,
                    review_notes=request.review_notes,
                )
            )
            result = session.connection().execute(statement)
            if result.rowcount != 1:
                if session.get(PaymentApprovalRequest, request.id) is None:
                    raise NotFoundError(f"Approval request {request.id} not found")
                raise ConflictError(f"Approval request {request.id} has already been reviewed")
            session.commit()
        return request


__all__ = ["SQLModelApprovalRepository"]
