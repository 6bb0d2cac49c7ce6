import logging
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.notification import DispatchResponse
from app.services.push import PushService
from app.services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/schedule-notifications", response_model=DispatchResponse)
async def schedule_notifications(
    request: Request,
    db: Session = Depends(deps.get_db),
    push_service: PushService = Depends(deps.get_push_service)
):
    """
    Ponto de entrada do gatilho externo (cron): {"type": "capsule" | "journey_daily" | "water" |
    "daily_summary" | "imc_reminder" | "treatment_end"}. Tipo desconhecido responde 200 com
    contagens zeradas; corpo inválido ou qualquer erro não tratado vira 500 {"error": ...}.
    """
    logger.info("⏱️ schedule-notifications chamado")
    try:
        body = await request.json()
        if not isinstance(body, dict):
            raise ValueError("Corpo da requisição deve ser um objeto JSON")
        notification_type = body.get("type")

        scheduler = NotificationScheduler(db, push_service)
        result = await run_in_threadpool(scheduler.run, notification_type)
        return result.as_response()
    except Exception as e:
        logger.exception(f"❌ Erro em schedule-notifications: {e}")
        db.rollback()
        return JSONResponse(status_code=500, content={"error": str(e) or e.__class__.__name__})
