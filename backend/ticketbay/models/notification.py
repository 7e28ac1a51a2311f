"""
In-app notification written by the post-commit notification worker.
"""

from sqlalchemy import Boolean, Column, Index, Integer, String

from ticketbay.db.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(String(1000), nullable=False)
    kind = Column(String(30), nullable=False)
    booking_reference = Column(String(64), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_notifications_user", "user_id", "is_read"),)
