import logging
from typing import Callable, Optional, Tuple

from app.client.manager import SubscriptionManager
from app.schemas.diagnostics import (
    ClientSnapshot, ClientSubscriptionInfo, DiagnosticsReport, LogLevel,
    PermissionState, ServiceWorkerStatus,
)
from app.schemas.notification import NotificationType
from app.services.diagnostics import DiagnosticsLog, build_report

logger = logging.getLogger(__name__)

SendTest = Callable[[NotificationType], Tuple[int, int]]


class PushDiagnostics:
    """
    Console de diagnóstico: estado do navegador x banco e ações manuais.
    Toda ação registra o resultado no log e refaz a comparação no final.
    Erros do navegador viram entradas de erro no log, como na tela de diagnóstico.
    """

    def __init__(self, manager: SubscriptionManager, send_test: Optional[SendTest] = None):
        self.manager = manager
        self.browser = manager.browser
        self.send_test = send_test
        self.log = DiagnosticsLog()

    def clear_logs(self):
        self.log.clear()

    def snapshot(self) -> ClientSnapshot:
        support = self.browser.support()
        registration = self.browser.get_registration() if support.service_worker else None
        worker = ServiceWorkerStatus()
        if registration is not None:
            worker = ServiceWorkerStatus(registered=True, state=registration.state,
                                         scope=registration.scope, script_url=registration.script_url)

        subscription = ClientSubscriptionInfo()
        browser_sub = self.browser.get_subscription() if support.service_worker else None
        if browser_sub is not None:
            subscription = ClientSubscriptionInfo(exists=True, endpoint=browser_sub.endpoint,
                                                  has_keys=browser_sub.has_keys)

        return ClientSnapshot(
            support=support,
            service_worker=worker,
            permission=self.browser.permission() if support.notification else PermissionState.UNSUPPORTED,
            subscription=subscription,
            is_ios=self.browser.is_ios(),
            is_standalone=self.browser.is_standalone(),
        )

    def refresh_all(self) -> DiagnosticsReport:
        self.log.add(LogLevel.INFO, "=== Iniciando diagnóstico completo ===")
        report = build_report(self.snapshot(), self.manager.registry.get_for_user(self.manager.user_id), self.log)
        self.log.add(LogLevel.INFO, "=== Diagnóstico completo ===")
        return report.model_copy(update={"logs": list(self.log.entries)})

    # --- Ações ---

    def register_worker(self) -> DiagnosticsReport:
        return self._action("Registrando Service Worker...", self._register_worker)

    def update_worker(self) -> DiagnosticsReport:
        return self._action("Atualizando Service Worker...", self._update_worker)

    def unregister_worker(self) -> DiagnosticsReport:
        return self._action("Desregistrando Service Worker...", self._unregister_worker)

    def request_permission(self) -> DiagnosticsReport:
        return self._action("Solicitando permissão de notificação...", self._request_permission)

    def create_subscription(self) -> DiagnosticsReport:
        return self._action("Criando nova subscription...", self._create_subscription)

    def delete_subscription(self) -> DiagnosticsReport:
        return self._action("Deletando subscription...", self._delete_subscription)

    def recreate_subscription(self) -> DiagnosticsReport:
        return self._action("=== Recriando subscription (VAPID refresh) ===", self._recreate_subscription)

    def send_test_notification(self, notification_type: NotificationType = NotificationType.TEST) -> DiagnosticsReport:
        return self._action(
            f"Enviando notificação de teste: {notification_type.value}...",
            lambda: self._send_test(notification_type),
        )

    def _action(self, message: str, operation: Callable[[], None]) -> DiagnosticsReport:
        self.log.add(LogLevel.INFO, message)
        try:
            operation()
        except Exception as e:
            logger.warning(f"Diagnóstico push: {message} falhou: {e}")
            self.log.add(LogLevel.ERROR, "Falha na operação", {"error": str(e), "type": e.__class__.__name__})
        return self.refresh_all()

    def _register_worker(self):
        self.browser.register_worker(self.manager.worker_script, scope="/")
        self.log.add(LogLevel.SUCCESS, "Service Worker registrado com sucesso")

    def _update_worker(self):
        if self.browser.update_worker():
            self.log.add(LogLevel.SUCCESS, "Service Worker atualizado")
        else:
            self.log.add(LogLevel.WARNING, "Nenhum Service Worker para atualizar")

    def _unregister_worker(self):
        for registration in self.browser.get_registrations():
            self.browser.unregister_worker(registration)
        self.log.add(LogLevel.SUCCESS, "Service Workers desregistrados")

    def _request_permission(self):
        if self.manager.request_permission():
            self.log.add(LogLevel.SUCCESS, "Permissão concedida!")
        else:
            self.log.add(LogLevel.WARNING, "Permissão não decidida (default)")

    def _create_subscription(self):
        if self.manager.subscribe() is None:
            self.log.add(LogLevel.WARNING, "Permissão não concedida; subscription não criada")
        else:
            self.log.add(LogLevel.SUCCESS, "Subscription salva no banco de dados")

    def _delete_subscription(self):
        self.manager.unsubscribe()
        self.log.add(LogLevel.SUCCESS, "Subscription removida do navegador e do banco de dados")

    def _recreate_subscription(self):
        self.manager.recreate()
        self.log.add(LogLevel.SUCCESS, "=== Subscription recriada com sucesso! ===")

    def _send_test(self, notification_type: NotificationType):
        if self.send_test is None:
            self.log.add(LogLevel.WARNING, "Envio de teste não configurado")
            return
        sent, total = self.send_test(notification_type)
        self.log.add(LogLevel.SUCCESS, "Resposta do envio", {"sent": sent, "total": total})
        if sent == 0:
            self.log.add(LogLevel.WARNING, "Nenhuma notificação enviada - verifique a subscription")
        else:
            self.log.add(LogLevel.SUCCESS, f"{sent} notificação(ões) enviada(s)!")
