import json
import logging
from datetime import datetime
from typing import Any, List, Optional

import pytz

from app.core.config import settings
from app.models.subscription import PushSubscription
from app.schemas.diagnostics import (
    ClientSnapshot, DiagnosticsReport, LogEntry, LogLevel, PermissionState,
    ServerSubscriptionInfo, SyncState,
)

logger = logging.getLogger(__name__)

# Ações corretivas sugeridas ao usuário/console
RESUBSCRIBE = "resubscribe"
RECREATE = "recreate"
DELETE = "delete"
REQUEST_PERMISSION = "request_permission"
RESET_PERMISSION_MANUALLY = "reset_permission_manually"
REGISTER_WORKER = "register_worker"
INSTALL_TO_HOME_SCREEN = "install_to_home_screen"


def classify(client_endpoint: Optional[str], server_endpoint: Optional[str]) -> SyncState:
    if client_endpoint and server_endpoint:
        if client_endpoint == server_endpoint:
            return SyncState.SYNCHRONIZED
        return SyncState.MISMATCHED
    if client_endpoint:
        return SyncState.CLIENT_ONLY
    if server_endpoint:
        return SyncState.SERVER_ONLY
    return SyncState.ABSENT


def _short(endpoint: str) -> str:
    return endpoint[:50] + "..." if len(endpoint) > 50 else endpoint


class DiagnosticsLog:
    """Log com nível, no formato exibido pelo console de diagnóstico."""

    def __init__(self):
        self.entries: List[LogEntry] = []

    def add(self, level: LogLevel, message: str, details: Any = None):
        self.entries.append(LogEntry(
            timestamp=datetime.now(pytz.utc),
            level=level,
            message=message,
            details=json.dumps(details, indent=2, default=str, ensure_ascii=False) if details is not None else None,
        ))

    def clear(self):
        self.entries = []


def recommended_actions(snapshot: ClientSnapshot, state: SyncState) -> List[str]:
    actions = []
    if snapshot.is_ios and not snapshot.is_standalone:
        actions.append(INSTALL_TO_HOME_SCREEN)
    if snapshot.support.service_worker and not snapshot.service_worker.registered:
        actions.append(REGISTER_WORKER)

    # "denied" é terminal: não pedir de novo, só o usuário reverte nas configurações
    if snapshot.permission is PermissionState.DENIED:
        actions.append(RESET_PERMISSION_MANUALLY)
    elif snapshot.permission is PermissionState.DEFAULT:
        actions.append(REQUEST_PERMISSION)

    if state is SyncState.CLIENT_ONLY:
        actions.append(RESUBSCRIBE)
    elif state is SyncState.MISMATCHED:
        actions.append(RECREATE)
    elif state is SyncState.SERVER_ONLY:
        actions.extend([RECREATE, DELETE])
    elif state is SyncState.ABSENT and snapshot.permission is not PermissionState.DENIED:
        actions.append(RESUBSCRIBE)
    return actions


def build_report(snapshot: ClientSnapshot, server_row: Optional[PushSubscription],
                 log: Optional[DiagnosticsLog] = None) -> DiagnosticsReport:
    """Compara o estado do navegador com a inscrição gravada no banco."""
    log = log or DiagnosticsLog()

    if snapshot.support.complete:
        log.add(LogLevel.SUCCESS, "Navegador suporta todas as APIs necessárias")
    else:
        log.add(LogLevel.WARNING, "Navegador não suporta todas as APIs", snapshot.support.model_dump())
    if snapshot.is_ios and not snapshot.is_standalone:
        log.add(LogLevel.WARNING, "iOS detectado: app precisa estar instalado na tela inicial")
    log.add(LogLevel.INFO, f"Permissão de notificação: {snapshot.permission.value}")

    if snapshot.service_worker.registered:
        log.add(LogLevel.SUCCESS, "Service Worker registrado", snapshot.service_worker.model_dump())
    else:
        log.add(LogLevel.WARNING, "Service Worker não registrado")

    client_endpoint = snapshot.subscription.endpoint if snapshot.subscription.exists else None
    if client_endpoint:
        log.add(LogLevel.SUCCESS, "Subscription encontrada no navegador",
                {"endpoint": _short(client_endpoint), "has_keys": snapshot.subscription.has_keys})
    else:
        log.add(LogLevel.WARNING, "Nenhuma subscription no navegador")

    server_info = None
    if server_row is not None:
        server_info = ServerSubscriptionInfo(id=server_row.id, endpoint=server_row.endpoint,
                                             created_at=server_row.created_at)
        log.add(LogLevel.SUCCESS, "Subscription encontrada no banco",
                {"id": server_row.id, "endpoint": _short(server_row.endpoint)})
    else:
        log.add(LogLevel.WARNING, "Nenhuma subscription no banco de dados")

    state = classify(client_endpoint, server_info.endpoint if server_info else None)
    if state is SyncState.SYNCHRONIZED:
        log.add(LogLevel.SUCCESS, "✓ Subscriptions sincronizadas (navegador = banco)")
    elif state is SyncState.MISMATCHED:
        log.add(LogLevel.ERROR, "✗ Subscriptions DESSINCRONIZADAS! Endpoints diferentes")
    elif state is SyncState.CLIENT_ONLY:
        log.add(LogLevel.WARNING, "Subscription existe no navegador mas NÃO no banco")
    elif state is SyncState.SERVER_ONLY:
        log.add(LogLevel.WARNING, "Subscription existe no banco mas NÃO no navegador")
    else:
        log.add(LogLevel.INFO, "Nenhuma subscription em ambos os locais")

    logger.debug(f"🔍 Diagnóstico push: {state.value}")

    return DiagnosticsReport(
        support=snapshot.support,
        service_worker=snapshot.service_worker,
        permission=snapshot.permission,
        client_subscription=snapshot.subscription,
        server_subscription=server_info,
        state=state,
        actions=recommended_actions(snapshot, state),
        logs=list(log.entries),
        vapid_public_key=settings.VAPID_PUBLIC_KEY,
    )
