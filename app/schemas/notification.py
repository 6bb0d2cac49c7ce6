import enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

class NotificationType(str, enum.Enum):
    CAPSULE = "capsule"
    JOURNEY_DAILY = "journey_daily"
    WATER = "water"
    DAILY_SUMMARY = "daily_summary"
    IMC_REMINDER = "imc_reminder"
    TREATMENT_END = "treatment_end"
    # Apenas para envio manual (diagnóstico)
    TEST = "test"

SCHEDULED_TYPES = [t for t in NotificationType if t is not NotificationType.TEST]

class DispatchResponse(BaseModel):
    success: bool = True
    sent: int
    total: int

class TestNotificationRequest(BaseModel):
    type: NotificationType = NotificationType.TEST

class TestNotificationResponse(BaseModel):
    type: NotificationType
    sent: int
    total: int

class NotificationSettingsUpdate(BaseModel):
    capsule_reminder: Optional[bool] = None
    capsule_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}(:\d{2})?$")
    water_reminder: Optional[bool] = None
    water_interval: Optional[int] = Field(None, ge=15, le=180)

class NotificationSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    capsule_reminder: Optional[bool] = None
    capsule_time: Optional[str] = None
    water_reminder: Optional[bool] = None
    water_interval: Optional[int] = None
    last_water_notification: Optional[datetime] = None
