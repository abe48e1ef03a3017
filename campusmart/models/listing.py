from datetime import datetime
from sqlalchemy import Column, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from campusmart.core.database import Base
from campusmart.models.base import generate_id

class Listing(Base):
    """Объявление. Здесь нужен только владелец (seller_id) и витринные поля."""
    __tablename__ = "listings"
    
    id = Column(String(32), primary_key=True, default=generate_id)
    seller_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    price = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    seller = relationship("User")
