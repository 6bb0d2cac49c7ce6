from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.api import deps
from app.core.config import settings
from app.core.errors import UnknownNotificationType
from app.models.notification_settings import NotificationSettings
from app.models.user import User
from app.schemas.diagnostics import ClientSnapshot, DiagnosticsReport
from app.schemas.notification import (
    NotificationSettingsResponse, NotificationSettingsUpdate,
    TestNotificationRequest, TestNotificationResponse,
)
from app.schemas.subscription import PushSubscriptionCreate, PushSubscriptionResponse
from app.services.diagnostics import build_report
from app.services.push import PushService
from app.services.scheduler import NotificationScheduler
from app.services.subscriptions import SubscriptionRegistry

router = APIRouter()

@router.get("/vapid-public-key")
def get_vapid_public_key():
    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(500, "VAPID não configurado.")
    return {"publicKey": settings.VAPID_PUBLIC_KEY}

@router.post("/subscribe", response_model=PushSubscriptionResponse)
def subscribe(
    sub_in: PushSubscriptionCreate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    """Substitui (delete + insert) a inscrição do usuário atual."""
    return SubscriptionRegistry(db).replace_for_user(
        current_user.id,
        endpoint=sub_in.endpoint,
        p256dh=sub_in.keys.p256dh,
        auth=sub_in.keys.auth,
    )

@router.get("/subscription", response_model=PushSubscriptionResponse)
def get_subscription(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    sub = SubscriptionRegistry(db).get_for_user(current_user.id)
    if not sub:
        raise HTTPException(404, "Nenhuma inscrição para este usuário.")
    return sub

@router.delete("/subscription")
def unsubscribe(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    removed = SubscriptionRegistry(db).delete_for_user(current_user.id)
    return {"msg": "Removido", "removed": removed}

@router.get("/settings", response_model=NotificationSettingsResponse)
def get_settings(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    return _get_or_create_settings(db, current_user.id)

@router.put("/settings", response_model=NotificationSettingsResponse)
def update_settings(
    settings_in: NotificationSettingsUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    row = _get_or_create_settings(db, current_user.id)
    for field, value in settings_in.model_dump(exclude_unset=True).items():
        setattr(row, field, value)
    db.commit()
    db.refresh(row)
    return row

@router.post("/diagnostics", response_model=DiagnosticsReport)
def diagnostics(
    snapshot: ClientSnapshot,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    """Compara o estado reportado pelo navegador com a inscrição do banco."""
    return build_report(snapshot, SubscriptionRegistry(db).get_for_user(current_user.id))

@router.post("/test", response_model=TestNotificationResponse)
def send_test_notification(
    request: TestNotificationRequest,
    db: Session = Depends(deps.get_db),
    push_service: PushService = Depends(deps.get_push_service),
    current_user: User = Depends(deps.get_current_user)
):
    """Envia para o usuário atual a notificação de qualquer tipo (ou o teste genérico)."""
    scheduler = NotificationScheduler(db, push_service)
    try:
        sent, total = scheduler.send_test(current_user.id, request.type)
    except UnknownNotificationType as e:
        raise HTTPException(400, str(e))

    if total == 0:
        raise HTTPException(400, "Você não tem dispositivos inscritos.")
    return {"type": request.type, "sent": sent, "total": total}

def _get_or_create_settings(db: Session, user_id: int) -> NotificationSettings:
    row = db.query(NotificationSettings).filter(NotificationSettings.user_id == user_id).first()
    if row is None:
        row = NotificationSettings(user_id=user_id)
        db.add(row)
        db.commit()
        db.refresh(row)
    return row
