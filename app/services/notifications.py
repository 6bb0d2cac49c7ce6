"""
Regras de seleção e textos das notificações agendadas.

Funções puras: recebem o "agora" já convertido para o fuso fixo e os dados do
banco, e decidem se um usuário entra na audiência de um tipo.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import pytz

from app.core.config import settings
from app.services.push import PushPayload

MINUTES_PER_DAY = 24 * 60
MS_PER_DAY = 86_400_000

DEFAULT_NAME = "Usuário"

# Duração de cada kit em dias
KIT_DURATION_DAYS = {
    "1_pote": 30,
    "2_potes": 60,
    "3_potes": 90,
    "5_potes": 150,
}
DEFAULT_KIT_DURATION_DAYS = 30

# Jornada: dias exatos desde a criação da conta -> mensagem
JOURNEY_MESSAGES = {
    1: {"title": "🎉 Bem-vinda ao LeveFit!", "body": "Seu processo começa hoje 💚"},
    3: {"title": "💊 Dia 3!", "body": "Seu corpo já está se adaptando ✨"},
    5: {"title": "🏅 Primeira conquista!", "body": "Continue firme 💚"},
    7: {"title": "✅ Semana 1 concluída!", "body": "Ótimo começo 👏"},
    10: {"title": "💚 Dia 10!", "body": "Constância gera resultado."},
    14: {"title": "🌱 2 semanas completas!", "body": "Seu corpo responde."},
    18: {"title": "👀 Falta pouco…", "body": "Continue registrando no app."},
    21: {"title": "🔓 Dia 21!", "body": "Você está muito perto 🎁"},
    23: {"title": "🎯 Quase lá!", "body": "Complete suas conquistas."},
    25: {"title": "🎁 Benefício desbloqueado!", "body": "Não interrompa seus resultados."},
}


def notification_timezone():
    return pytz.FixedOffset(settings.NOTIFICATION_UTC_OFFSET_MINUTES)


def scheduler_timezone_name() -> str:
    """
    Nome IANA do fuso fixo para os gatilhos do APScheduler ('Etc/GMT+3' = UTC-3).
    O APScheduler aceita o nome em qualquer versão 3.x; objetos FixedOffset do pytz não.
    """
    hours, rest = divmod(settings.NOTIFICATION_UTC_OFFSET_MINUTES, 60)
    if rest:
        raise ValueError("NOTIFICATION_UTC_OFFSET_MINUTES precisa ser um número inteiro de horas")
    if hours == 0:
        return "Etc/UTC"
    # Os nomes Etc/GMT têm o sinal invertido
    return f"Etc/GMT{-hours:+d}"


def local_now(now: Optional[datetime] = None) -> datetime:
    """Data/hora atual no fuso fixo das notificações (sem fuso por usuário)."""
    now = now or datetime.now(pytz.utc)
    return as_utc(now).astimezone(notification_timezone())


def as_utc(value: datetime) -> datetime:
    """Datas sem tzinfo vindas do banco são tratadas como UTC."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def parse_capsule_time(value: Optional[str]) -> Optional[int]:
    """'HH:MM' ou 'HH:MM:SS' -> minutos desde a meia-noite."""
    if not value:
        return None
    try:
        parts = [int(p) for p in value.strip().split(":")]
    except ValueError:
        return None
    if len(parts) < 2 or not (0 <= parts[0] < 24 and 0 <= parts[1] < 60):
        return None
    return parts[0] * 60 + parts[1]


def capsule_time_matches(capsule_time: Optional[str], now: datetime, window: Optional[int] = None) -> bool:
    """
    Janela de +-window minutos em torno do horário da cápsula.
    Diferenças >= 1440 - window contam como vizinhas (23:59 x 00:00).
    """
    window = settings.CAPSULE_WINDOW_MINUTES if window is None else window
    setting_minutes = parse_capsule_time(capsule_time)
    if setting_minutes is None:
        return False
    current_minutes = now.hour * 60 + now.minute
    diff = abs(setting_minutes - current_minutes)
    return diff <= window or diff >= MINUTES_PER_DAY - window


def journey_day(created_at: Optional[datetime], now: datetime) -> Optional[int]:
    """Dia da jornada (1 = primeiras 24h): ceil(ms decorridos / ms por dia)."""
    if created_at is None:
        return None
    elapsed_ms = (as_utc(now) - as_utc(created_at)) // timedelta(milliseconds=1)
    return -(-elapsed_ms // MS_PER_DAY)


def water_due(last_notification: Optional[datetime], interval_minutes: Optional[int], now: datetime) -> bool:
    if not interval_minutes:
        return False
    if last_notification is not None:
        elapsed = as_utc(now) - as_utc(last_notification)
        return elapsed >= timedelta(minutes=interval_minutes)
    # Primeira notificação do dia: só em horário comercial
    return settings.WATER_FIRST_HOUR <= local_now(now).hour <= settings.WATER_LAST_HOUR


def water_percent(progress: Optional[int], goal: Optional[int]) -> int:
    """Percentual da meta de água, arredondado meia-para-cima (74,5 -> 75)."""
    goal = goal or settings.DEFAULT_WATER_GOAL
    percent = Decimal(progress or 0) * 100 / Decimal(goal)
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def treatment_day(start: Optional[date], today: date) -> int:
    if start is None:
        return 0
    return (today - start).days + 1


def treatment_days_remaining(start: Optional[date], kit_type: Optional[str], now: datetime) -> Optional[int]:
    """
    Dias até o fim do kit: ceil((início + duração - agora) / 1 dia).
    O início é meia-noite UTC da data gravada. Kit desconhecido conta como 30 dias.
    """
    if start is None or not kit_type:
        return None
    duration = KIT_DURATION_DAYS.get(kit_type, DEFAULT_KIT_DURATION_DAYS)
    end = pytz.utc.localize(datetime(start.year, start.month, start.day)) + timedelta(days=duration)
    remaining_ms = (end - as_utc(now)) // timedelta(milliseconds=1)
    return -(-remaining_ms // MS_PER_DAY)


def treatment_ending(start: Optional[date], kit_type: Optional[str], now: datetime) -> bool:
    remaining = treatment_days_remaining(start, kit_type, now)
    return remaining is not None and 0 <= remaining <= settings.TREATMENT_END_WINDOW_DAYS


def first_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        return DEFAULT_NAME
    return name.split()[0]


def _epoch_ms(now: datetime) -> int:
    return int(as_utc(now).timestamp() * 1000)


# --- Payloads ---

def capsule_payload(now: datetime) -> PushPayload:
    return PushPayload(
        title="💊 Hora do LeveFit!",
        body="Não esqueça de tomar sua cápsula hoje para melhores resultados!",
        tag=f"levefit-capsule-{_epoch_ms(now)}",
        url="/calendar",
    )


def journey_payload(day: int, today: date) -> Optional[PushPayload]:
    message = JOURNEY_MESSAGES.get(day)
    if message is None:
        return None
    return PushPayload(
        title=message["title"],
        body=message["body"],
        tag=f"levefit-journey-day{day}-{today.isoformat()}",
        url="/dashboard",
    )


def water_payload(now: datetime) -> PushPayload:
    return PushPayload(
        title="💧 Hora de beber água!",
        body="Mantenha-se hidratado para potencializar os resultados do LeveFit.",
        tag=f"levefit-water-{_epoch_ms(now)}",
        url="/dashboard",
    )


def daily_summary_payload(name: str, day: int, capsule_days: int, percent: int, today: date) -> PushPayload:
    return PushPayload(
        title=f"📊 Resumo do Dia, {name}!",
        body=f"Dia {day} de tratamento | {capsule_days} cápsulas | Água: {percent}%",
        tag=f"levefit-daily-summary-{today.isoformat()}",
        url="/progress",
    )


def imc_payload(days_since: Optional[int], today: date) -> PushPayload:
    if days_since:
        body = f"Já faz {days_since} dias desde a sua última pesagem. Registre seu peso e acompanhe seu IMC."
    else:
        body = "Registre seu peso e acompanhe a evolução do seu IMC."
    return PushPayload(
        title="⚖️ Hora de atualizar seu IMC!",
        body=body,
        tag=f"levefit-imc-{today.isoformat()}",
        url="/progress",
    )


def treatment_end_payload(today: date) -> PushPayload:
    return PushPayload(
        title="🎯 Reta final do tratamento!",
        body="Você está nos últimos dias! Continue firme no seu objetivo!",
        tag=f"levefit-treatment-end-{today.isoformat()}",
        url="/progress",
    )


def diagnostic_payload(now: datetime) -> PushPayload:
    return PushPayload(
        title="🔔 Teste de Notificação",
        body="As notificações push estão funcionando! 🎉",
        tag=f"levefit-test-{_epoch_ms(now)}",
        url="/dashboard",
    )
