from sqlalchemy import Column, Integer, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.db.base import Base

class CapsuleDay(Base):
    """Um registro por dia em que o usuário marcou a cápsula como tomada."""
    __tablename__ = "capsule_days"
    __table_args__ = (UniqueConstraint("user_id", "date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class WaterIntakeHistory(Base):
    __tablename__ = "water_intake_history"
    __table_args__ = (UniqueConstraint("user_id", "date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    total_intake = Column(Integer, nullable=False, default=0)  # ml
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ProgressHistory(Base):
    """Pesagens (peso/IMC). A mais recente define o lembrete de IMC."""
    __tablename__ = "progress_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    weight = Column(Float, nullable=False)
    imc = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
