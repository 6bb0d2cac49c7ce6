from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.db.base import Base

class NotificationSettings(Base):
    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    capsule_reminder = Column(Boolean, default=True)
    capsule_time = Column(String(8), nullable=True, default="08:00")  # "HH:MM[:SS]" no fuso fixo

    water_reminder = Column(Boolean, default=True)
    water_interval = Column(Integer, default=60)  # minutos (15-180 na tela de configurações)
    # Cursor do lembrete de água; único campo que o agendador escreve
    last_water_notification = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
