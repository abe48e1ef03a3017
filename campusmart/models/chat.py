from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from campusmart.core.database import Base
from campusmart.models.base import generate_id


class Chat(Base):
    __tablename__ = "chats"
    # Уникальность (listing, buyer) не навязывается, см. DeliveryService
    __table_args__ = (Index("ix_chats_listing_buyer", "listing_id", "buyer_id"),)

    id = Column(String(32), primary_key=True, default=generate_id)
    listing_id = Column(String(32), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    seller_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    last_message = Column(Text, nullable=True)
    last_message_timestamp = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    listing = relationship("Listing")
    seller = relationship("User", foreign_keys=[seller_id])
    buyer = relationship("User", foreign_keys=[buyer_id])
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
    )

    def counterpart_of(self, user_id: str) -> str | None:
        if user_id == self.buyer_id:
            return self.seller_id
        if user_id == self.seller_id:
            return self.buyer_id
        return None
