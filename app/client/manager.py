import base64
import logging
from typing import Optional

from app.client.browser import BrowserPushClient, BrowserSubscription
from app.core.config import settings
from app.core.errors import PermissionDeniedError, PushNotSupportedError, SubscriptionKeysMissing
from app.core.vapid import b64url_decode
from app.models.subscription import PushSubscription
from app.schemas.diagnostics import PermissionState
from app.services.subscriptions import SubscriptionRegistry

logger = logging.getLogger(__name__)

WORKER_SCRIPT = "/firebase-messaging-sw.js"


class SubscriptionManager:
    """
    Cria, troca e remove a inscrição do navegador e mantém a linha do servidor em sincronia.
    A chave pública usada é sempre a atual; após rotação das chaves VAPID use recreate().
    """

    def __init__(self, browser: BrowserPushClient, registry: SubscriptionRegistry, user_id: int,
                 public_key: Optional[str] = None, worker_script: str = WORKER_SCRIPT):
        self.browser = browser
        self.registry = registry
        self.user_id = user_id
        self.public_key = public_key or settings.VAPID_PUBLIC_KEY
        self.worker_script = worker_script

    @property
    def is_supported(self) -> bool:
        return self.browser.support().complete

    def permission_status(self) -> PermissionState:
        if not self.is_supported:
            return PermissionState.UNSUPPORTED
        return self.browser.permission()

    def request_permission(self) -> bool:
        """
        True se concedida. "denied" nunca é pedido de novo (PermissionDeniedError);
        "default" pode ser pedido novamente mais tarde.
        """
        if not self.is_supported:
            raise PushNotSupportedError("Seu navegador não suporta notificações.")
        if self.browser.is_ios() and not self.browser.is_standalone():
            raise PushNotSupportedError("No iPhone/iPad, instale o app na tela inicial para receber notificações.")

        current = self.browser.permission()
        if current is PermissionState.GRANTED:
            return True
        if current is PermissionState.DENIED:
            raise PermissionDeniedError("As notificações foram bloqueadas nas configurações do navegador.")

        result = self.browser.request_permission()
        if result is PermissionState.DENIED:
            raise PermissionDeniedError("As notificações foram bloqueadas nas configurações do navegador.")
        return result is PermissionState.GRANTED

    def ensure_worker(self):
        registration = self.browser.get_registration()
        if registration is None:
            registration = self.browser.register_worker(self.worker_script, scope="/")
            logger.info(f"Service Worker registrado ({registration.scope})")
        return registration

    def subscribe(self) -> Optional[PushSubscription]:
        """Ativa o push: permissão, worker, nova inscrição e substituição da linha no servidor."""
        if not self.request_permission():
            return None
        self.ensure_worker()
        if self.browser.get_subscription() is not None:
            self.browser.unsubscribe()
        return self._save(self._create_browser_subscription())

    def unsubscribe(self) -> None:
        if self.browser.get_subscription() is not None:
            self.browser.unsubscribe()
        self.registry.delete_for_user(self.user_id)

    def recreate(self) -> PushSubscription:
        """Rotação: remove a inscrição antiga nos dois lados e cria outra com a chave atual."""
        if self.browser.get_subscription() is not None:
            self.browser.unsubscribe()
            logger.info("1. Subscription antiga removida do navegador")
        self.registry.delete_for_user(self.user_id)
        logger.info("2. Subscription antiga removida do banco")

        self.ensure_worker()
        subscription = self._create_browser_subscription()
        logger.info("3. Nova subscription criada no navegador")
        return self._save(subscription)

    def check_subscription(self, push_activated: bool = False) -> bool:
        """
        Confere navegador x banco e recria silenciosamente quando divergem.
        Sem linha no banco, só recria se o usuário já tinha ativado o push.
        """
        server = self.registry.get_for_user(self.user_id)
        if server is None:
            if push_activated:
                return self._auto_recreate()
            return False

        if not self.browser.support().service_worker:
            return True

        browser = self.browser.get_subscription()
        if browser is not None and browser.endpoint == server.endpoint:
            return True
        return self._auto_recreate()

    def _auto_recreate(self) -> bool:
        try:
            if not self.request_permission():
                logger.info("Permissão não concedida; não é possível recriar a inscrição")
                return False
            self.recreate()
        except (PermissionDeniedError, PushNotSupportedError, SubscriptionKeysMissing) as e:
            logger.warning(f"Falha ao recriar inscrição automaticamente: {e}")
            return False
        return True

    def _create_browser_subscription(self) -> BrowserSubscription:
        return self.browser.subscribe(b64url_decode(self.public_key))

    def _save(self, subscription: BrowserSubscription) -> PushSubscription:
        if not subscription.has_keys:
            raise SubscriptionKeysMissing("Falha ao obter chaves da subscription")
        return self.registry.replace_for_user(
            self.user_id,
            endpoint=subscription.endpoint,
            p256dh=base64.b64encode(subscription.p256dh).decode("ascii"),
            auth=base64.b64encode(subscription.auth).decode("ascii"),
        )
