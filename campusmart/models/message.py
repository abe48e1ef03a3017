from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from campusmart.core.database import Base
from campusmart.models.base import generate_sortable_id


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True, default=generate_sortable_id)
    sender_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    chat_id = Column(String(32), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    listing_id = Column(String(32), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    read_status = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    chat = relationship("Chat", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
