import enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class PermissionState(str, enum.Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"

class SyncState(str, enum.Enum):
    SYNCHRONIZED = "synchronized"
    MISMATCHED = "mismatched"      # existe nos dois lados com endpoints diferentes
    CLIENT_ONLY = "client_only"
    SERVER_ONLY = "server_only"
    ABSENT = "absent"

class LogLevel(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

class BrowserSupport(BaseModel):
    service_worker: bool = False
    push_manager: bool = False
    notification: bool = False

    @property
    def complete(self) -> bool:
        return self.service_worker and self.push_manager and self.notification

class ServiceWorkerStatus(BaseModel):
    registered: bool = False
    state: str = "none"  # installing | installed | activating | activated | redundant | none
    scope: Optional[str] = None
    script_url: Optional[str] = None

class ClientSubscriptionInfo(BaseModel):
    exists: bool = False
    endpoint: Optional[str] = None
    has_keys: bool = False

class ClientSnapshot(BaseModel):
    """Estado que o navegador reporta para o diagnóstico."""
    support: BrowserSupport = Field(default_factory=BrowserSupport)
    service_worker: ServiceWorkerStatus = Field(default_factory=ServiceWorkerStatus)
    permission: PermissionState = PermissionState.DEFAULT
    subscription: ClientSubscriptionInfo = Field(default_factory=ClientSubscriptionInfo)
    is_ios: bool = False
    is_standalone: bool = False

class ServerSubscriptionInfo(BaseModel):
    id: int
    endpoint: str
    created_at: Optional[datetime] = None

class LogEntry(BaseModel):
    timestamp: datetime
    level: LogLevel
    message: str
    details: Optional[str] = None

class DiagnosticsReport(BaseModel):
    support: BrowserSupport
    service_worker: ServiceWorkerStatus
    permission: PermissionState
    client_subscription: ClientSubscriptionInfo
    server_subscription: Optional[ServerSubscriptionInfo] = None
    state: SyncState
    actions: List[str] = []
    logs: List[LogEntry] = []
    vapid_public_key: str
