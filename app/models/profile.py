from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base

class Profile(Base):
    """Dados de tratamento mantidos pelo app. Este serviço só lê."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    name = Column(String(255), nullable=False)
    water_goal = Column(Integer, nullable=True)  # ml
    treatment_start_date = Column(Date, nullable=True)
    kit_type = Column(String(20), nullable=True)  # 1_pote | 2_potes | 3_potes | 5_potes
    push_activated = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User")
