"""
Fronteira com o navegador (Service Worker, PushManager, Notification API).

O app web implementa este protocolo; aqui ele só descreve o que o gerenciador de
inscrição e o console de diagnóstico precisam.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol

from app.schemas.diagnostics import BrowserSupport, PermissionState


@dataclass
class WorkerRegistration:
    scope: str
    script_url: Optional[str] = None
    state: str = "activated"


@dataclass
class BrowserSubscription:
    endpoint: str
    p256dh: Optional[bytes] = None
    auth: Optional[bytes] = None

    @property
    def has_keys(self) -> bool:
        return bool(self.p256dh) and bool(self.auth)


class BrowserPushClient(Protocol):

    def support(self) -> BrowserSupport: ...

    def is_ios(self) -> bool: ...

    def is_standalone(self) -> bool: ...

    def permission(self) -> PermissionState: ...

    def request_permission(self) -> PermissionState: ...

    def get_registration(self) -> Optional[WorkerRegistration]: ...

    def get_registrations(self) -> List[WorkerRegistration]: ...

    def register_worker(self, script_url: str, scope: str = "/") -> WorkerRegistration: ...

    def update_worker(self) -> bool: ...

    def unregister_worker(self, registration: WorkerRegistration) -> bool: ...

    def get_subscription(self) -> Optional[BrowserSubscription]: ...

    def subscribe(self, application_server_key: bytes) -> BrowserSubscription: ...

    def unsubscribe(self) -> bool: ...
