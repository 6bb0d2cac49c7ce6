class VapidKeyError(Exception):
    """Material de chave VAPID inválido ou par público/privado que não confere."""


class UnknownNotificationType(ValueError):
    def __init__(self, value):
        super().__init__(f"Tipo de notificação desconhecido: {value!r}")
        self.value = value


class PushNotSupportedError(Exception):
    """Navegador sem Service Worker, PushManager ou Notification API."""


class PermissionDeniedError(Exception):
    """Permissão de notificação negada. Só o usuário pode reverter, nas configurações do navegador."""


class SubscriptionKeysMissing(Exception):
    """Inscrição criada sem as chaves p256dh/auth."""
