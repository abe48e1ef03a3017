from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean
from campusmart.core.database import Base
from campusmart.models.base import generate_id

class User(Base):
    __tablename__ = "users"
    
    id = Column(String(32), primary_key=True, default=generate_id)
    email = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
