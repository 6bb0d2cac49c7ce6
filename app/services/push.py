import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from pywebpush import webpush, WebPushException
from requests import RequestException

from app.core.config import settings
from app.core.errors import VapidKeyError
from app.core.vapid import VapidSigner
from app.models.subscription import PushSubscription

logger = logging.getLogger(__name__)

# Respostas do serviço push que indicam inscrição morta (não adianta tentar de novo)
EXPIRED_STATUS_CODES = (404, 410)


@dataclass
class PushPayload:
    title: str
    body: str
    icon: Optional[str] = None
    tag: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon or settings.PUSH_DEFAULT_ICON,
            "tag": self.tag or settings.PUSH_DEFAULT_TAG,
            "data": {"url": self.url or settings.PUSH_DEFAULT_URL},
        }


@dataclass
class DeliveryResult:
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def expired(self) -> bool:
        return self.status_code in EXPIRED_STATUS_CODES


class PushService:
    """
    Entrega uma notificação a uma inscrição.

    Modo padrão: POST com o JSON em texto puro e cabeçalho `Authorization: vapid t=..., k=...`
    (p256dh/auth são recebidos mas não usados). Com PUSH_ENCRYPT_PAYLOAD o corpo é
    criptografado pelo pywebpush usando as chaves da inscrição.
    """

    def __init__(self, signer: Optional[VapidSigner] = None, client: Optional[httpx.Client] = None,
                 encrypt: Optional[bool] = None):
        self.signer = signer or VapidSigner.from_settings()
        self.encrypt = settings.PUSH_ENCRYPT_PAYLOAD if encrypt is None else encrypt
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=settings.PUSH_REQUEST_TIMEOUT_SECONDS)

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def deliver(self, subscription: PushSubscription, payload: PushPayload) -> DeliveryResult:
        """Nunca levanta exceção: falha de assinatura ou de rede vira DeliveryResult(ok=False)."""
        try:
            if self.encrypt:
                return self._deliver_encrypted(subscription, payload)
            return self._deliver_plain(subscription, payload)
        except VapidKeyError as e:
            logger.error(f"❌ Erro de assinatura VAPID (inscrição {subscription.id}): {e}")
            return DeliveryResult(ok=False, error=str(e))
        except (httpx.HTTPError, RequestException, ValueError) as e:
            logger.warning(f"❌ Erro Push (inscrição {subscription.id}): {e}")
            return DeliveryResult(ok=False, error=str(e))

    def send_notification(self, subscription: PushSubscription, payload: PushPayload) -> bool:
        return self.deliver(subscription, payload).ok

    def _deliver_plain(self, subscription: PushSubscription, payload: PushPayload) -> DeliveryResult:
        body = json.dumps(payload.to_dict(), ensure_ascii=False).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Content-Length": str(len(body)),
            "TTL": str(settings.PUSH_TTL_SECONDS),
            "Urgency": settings.PUSH_URGENCY,
            "Authorization": self.signer.authorization_header(subscription.endpoint),
        }
        response = self.client.post(subscription.endpoint, content=body, headers=headers)
        if response.is_success:
            return DeliveryResult(ok=True, status_code=response.status_code)

        logger.warning(f"❌ Push falhou ({response.status_code}) para inscrição {subscription.id}: {response.text}")
        return DeliveryResult(ok=False, status_code=response.status_code, error=response.text)

    def _deliver_encrypted(self, subscription: PushSubscription, payload: PushPayload) -> DeliveryResult:
        try:
            response = webpush(
                subscription_info={
                    "endpoint": subscription.endpoint,
                    "keys": {
                        "p256dh": subscription.p256dh,
                        "auth": subscription.auth
                    }
                },
                data=json.dumps(payload.to_dict(), ensure_ascii=False),
                vapid_private_key=self.signer.private_key,
                vapid_claims={"sub": self.signer.subject},
                ttl=settings.PUSH_TTL_SECONDS,
                headers={"Urgency": settings.PUSH_URGENCY},
                timeout=settings.PUSH_REQUEST_TIMEOUT_SECONDS,
            )
        except WebPushException as ex:
            status_code = ex.response.status_code if ex.response is not None else None
            logger.warning(f"❌ Erro Push (inscrição {subscription.id}, status {status_code}): {ex}")
            return DeliveryResult(ok=False, status_code=status_code, error=str(ex))
        return DeliveryResult(ok=True, status_code=getattr(response, "status_code", None))
