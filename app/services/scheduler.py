from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union
import logging

import pytz
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UnknownNotificationType
from app.models.activity import CapsuleDay, WaterIntakeHistory, ProgressHistory
from app.models.notification_settings import NotificationSettings
from app.models.profile import Profile
from app.models.subscription import PushSubscription
from app.models.user import User
from app.schemas.notification import NotificationType, SCHEDULED_TYPES
from app.services import notifications as rules
from app.services.push import PushPayload, PushService
from app.services.subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    sent: int = 0
    total: int = 0
    pruned: int = 0
    success: bool = True

    def as_response(self) -> dict:
        return {"success": self.success, "sent": self.sent, "total": self.total}


def parse_type(value: Union[str, NotificationType, None], allow_test: bool = False) -> NotificationType:
    try:
        notification_type = NotificationType(value)
    except ValueError:
        raise UnknownNotificationType(value)
    if notification_type is NotificationType.TEST and not allow_test:
        raise UnknownNotificationType(value)
    return notification_type


class NotificationScheduler:
    """
    Uma passada de envio para um tipo de notificação.

    Sem estado entre execuções: o único cursor (last_water_notification) vive no banco.
    Falha de entrega numa inscrição é contada e não interrompe o laço; erro de consulta
    ao banco sobe para quem chamou e aborta a passada.
    """

    def __init__(self, db: Session, push_service: PushService, now: Optional[datetime] = None):
        self.db = db
        self.push = push_service
        self.registry = SubscriptionRegistry(db)
        self.now = rules.local_now(now)
        self.today = self.now.date()

    def run(self, notification_type: Union[str, NotificationType, None]) -> DispatchResult:
        """Tipo desconhecido ou ausente não é erro: nada é enviado e o resultado vem zerado."""
        try:
            notification_type = parse_type(notification_type)
        except UnknownNotificationType as e:
            logger.warning(f"⚠️ {e}; nada a enviar")
            return DispatchResult()
        handler = {
            NotificationType.CAPSULE: self._run_capsule,
            NotificationType.JOURNEY_DAILY: self._run_journey_daily,
            NotificationType.WATER: self._run_water,
            NotificationType.DAILY_SUMMARY: self._run_daily_summary,
            NotificationType.IMC_REMINDER: self._run_imc_reminder,
            NotificationType.TREATMENT_END: self._run_treatment_end,
        }[notification_type]

        result = handler()
        logger.info(
            f"📨 [{notification_type.value}] Enviadas {result.sent} notificações para {result.total} usuários"
            + (f" ({result.pruned} inscrições expiradas removidas)" if result.pruned else "")
        )
        return result

    # --- Entrega ---

    def _deliver_to_user(self, user_id: int, payload: PushPayload, result: DispatchResult) -> int:
        """Entrega a todas as inscrições do usuário. Retorna quantas tiveram sucesso."""
        delivered = 0
        for sub in self.registry.list_for_user(user_id):
            outcome = self.push.deliver(sub, payload)
            if outcome.ok:
                delivered += 1
            elif outcome.expired and settings.PUSH_PRUNE_EXPIRED:
                logger.info(f"🧹 Inscrição {sub.id} do usuário {user_id} expirou ({outcome.status_code}); removendo")
                self.registry.delete(sub)
                result.pruned += 1
        result.sent += delivered
        return delivered

    # --- Tipos ---

    def _run_capsule(self) -> DispatchResult:
        result = DispatchResult()
        candidates = self.db.query(NotificationSettings).filter(
            NotificationSettings.capsule_reminder == True,
            NotificationSettings.capsule_time.isnot(None)
        ).all()

        taken_today = {
            row.user_id for row in self.db.query(CapsuleDay.user_id).filter(CapsuleDay.date == self.today).all()
        }
        # Quem já marcou a cápsula de hoje não recebe o lembrete
        targets = [
            s for s in candidates
            if rules.capsule_time_matches(s.capsule_time, self.now) and s.user_id not in taken_today
        ]
        result.total = len(targets)
        logger.info(f"💊 Lembrete de cápsula: {result.total} usuários")

        for setting in targets:
            self._deliver_to_user(setting.user_id, rules.capsule_payload(self.now), result)
        return result

    def _run_journey_daily(self) -> DispatchResult:
        # Sem registro de "já enviado": o gatilho externo deve rodar no máximo uma vez por dia.
        result = DispatchResult()
        users = self.db.query(User).filter(User.created_at.isnot(None)).order_by(User.id).all()

        for user in users:
            day = rules.journey_day(user.created_at, self.now)
            payload = rules.journey_payload(day, self.today)
            if payload is None:
                continue
            result.total += 1
            logger.info(f"🗓️ Usuário {user.id}: dia {day} da jornada")
            self._deliver_to_user(user.id, payload, result)
        return result

    def _run_water(self) -> DispatchResult:
        result = DispatchResult()
        candidates = self.db.query(NotificationSettings).filter(
            NotificationSettings.water_reminder == True
        ).all()

        targets = [
            s for s in candidates
            if rules.water_due(s.last_water_notification, s.water_interval, self.now)
        ]
        result.total = len(targets)
        logger.info(f"💧 Lembrete de água: {result.total} usuários")

        for setting in targets:
            if self._deliver_to_user(setting.user_id, rules.water_payload(self.now), result):
                # Não é atômico com a entrega: duas passadas simultâneas podem enviar em dobro.
                setting.last_water_notification = self.now.astimezone(pytz.utc)
                self.db.commit()
        return result

    def _run_daily_summary(self) -> DispatchResult:
        result = DispatchResult()
        user_ids = self.registry.user_ids_with_subscriptions()
        result.total = len(user_ids)

        for user_id in user_ids:
            self._deliver_to_user(user_id, self._daily_summary_for(user_id), result)
        return result

    def _run_imc_reminder(self) -> DispatchResult:
        result = DispatchResult()
        for user_id, days_since in self._stale_progress_users():
            result.total += 1
            self._deliver_to_user(user_id, rules.imc_payload(days_since, self.today), result)
        return result

    def _run_treatment_end(self) -> DispatchResult:
        result = DispatchResult()
        profiles = self.db.query(Profile).filter(
            Profile.treatment_start_date.isnot(None),
            Profile.kit_type.isnot(None)
        ).order_by(Profile.user_id).all()

        targets = [p for p in profiles if rules.treatment_ending(p.treatment_start_date, p.kit_type, self.now)]
        result.total = len(targets)
        logger.info(f"🎯 Reta final do tratamento: {result.total} usuários")

        for profile in targets:
            self._deliver_to_user(profile.user_id, rules.treatment_end_payload(self.today), result)
        return result

    # --- Consultas ---

    def _daily_summary_for(self, user_id: int) -> PushPayload:
        profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
        capsule_days = self.db.query(func.count(CapsuleDay.id)).filter(CapsuleDay.user_id == user_id).scalar() or 0
        today_water = self.db.query(WaterIntakeHistory.total_intake).filter(
            WaterIntakeHistory.user_id == user_id,
            WaterIntakeHistory.date == self.today
        ).scalar()

        # Perfil ausente não tira o usuário do resumo: usa valores padrão
        name = rules.first_name(profile.name if profile else None)
        percent = rules.water_percent(today_water, profile.water_goal if profile else None)
        day = rules.treatment_day(profile.treatment_start_date if profile else None, self.today)
        return rules.daily_summary_payload(name, day, capsule_days, percent, self.today)

    def _stale_progress_users(self):
        cutoff = self.today - timedelta(days=settings.IMC_REMINDER_DAYS)
        last_entry = func.max(ProgressHistory.date)
        rows = (
            self.db.query(ProgressHistory.user_id, last_entry)
            .group_by(ProgressHistory.user_id)
            .having(last_entry <= cutoff)
            .order_by(ProgressHistory.user_id)
            .all()
        )
        return [(user_id, (self.today - last).days) for user_id, last in rows]

    # --- Envio manual (diagnóstico) ---

    def send_test(self, user_id: int, notification_type: Union[str, NotificationType]) -> Tuple[int, int]:
        """
        Envia a mensagem de um tipo para um único usuário, sem filtro de audiência
        e sem mexer em cursores. Retorna (enviadas, inscrições).
        """
        notification_type = parse_type(notification_type, allow_test=True)
        payload = self._test_payload(user_id, notification_type)
        result = DispatchResult(total=len(self.registry.list_for_user(user_id)))
        self._deliver_to_user(user_id, payload, result)
        logger.info(f"🧪 Teste [{notification_type.value}] para usuário {user_id}: {result.sent}/{result.total}")
        return result.sent, result.total

    def _test_payload(self, user_id: int, notification_type: NotificationType) -> PushPayload:
        if notification_type is NotificationType.CAPSULE:
            return rules.capsule_payload(self.now)
        if notification_type is NotificationType.WATER:
            return rules.water_payload(self.now)
        if notification_type is NotificationType.DAILY_SUMMARY:
            return self._daily_summary_for(user_id)
        if notification_type is NotificationType.JOURNEY_DAILY:
            user = self.db.query(User).filter(User.id == user_id).first()
            day = rules.journey_day(user.created_at if user else None, self.now)
            return rules.journey_payload(day, self.today) or rules.journey_payload(1, self.today)
        if notification_type is NotificationType.IMC_REMINDER:
            last = self.db.query(func.max(ProgressHistory.date)).filter(ProgressHistory.user_id == user_id).scalar()
            return rules.imc_payload((self.today - last).days if last else None, self.today)
        if notification_type is NotificationType.TREATMENT_END:
            return rules.treatment_end_payload(self.today)
        return rules.diagnostic_payload(self.now)


# --- Gatilhos internos (APScheduler) ---

scheduler = BackgroundScheduler()

def run_notification_job(notification_type: NotificationType) -> Optional[DispatchResult]:
    """Executa uma passada com sessão própria. Usado pelos jobs do APScheduler."""

    # Importação tardia: a sessão depende da configuração do banco
    from app.db.session import SessionLocal

    logger.info(f"⏱️ [Scheduler] Executando {notification_type.value}...")
    db = SessionLocal()
    try:
        with PushService() as push_service:
            return NotificationScheduler(db, push_service).run(notification_type)
    except Exception as e:
        logger.error(f"❌ Erro Scheduler ({notification_type.value}): {e}")
        db.rollback()
        return None
    finally:
        db.close()

def _job_triggers():
    tz = rules.scheduler_timezone_name()
    return {
        NotificationType.CAPSULE: IntervalTrigger(minutes=settings.CAPSULE_INTERVAL_MINUTES, timezone=tz),
        NotificationType.WATER: IntervalTrigger(minutes=settings.WATER_CHECK_INTERVAL_MINUTES, timezone=tz),
        NotificationType.JOURNEY_DAILY: CronTrigger(hour=settings.JOURNEY_DAILY_HOUR, minute=0, timezone=tz),
        NotificationType.IMC_REMINDER: CronTrigger(hour=settings.IMC_REMINDER_HOUR, minute=0, timezone=tz),
        NotificationType.DAILY_SUMMARY: CronTrigger(hour=settings.DAILY_SUMMARY_HOUR, minute=0, timezone=tz),
        NotificationType.TREATMENT_END: CronTrigger(hour=settings.TREATMENT_END_HOUR, minute=0, timezone=tz),
    }

def start_scheduler():
    if not scheduler.running:
        for notification_type, trigger in _job_triggers().items():
            scheduler.add_job(
                run_notification_job,
                trigger,
                args=[notification_type],
                id=f"notifications-{notification_type.value}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        scheduler.start()
        logger.info(f"--- 🕒 Scheduler Iniciado ({len(SCHEDULED_TYPES)} tipos de notificação) ---")

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
