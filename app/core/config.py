from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # --- GERAIS ---
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "LeveFit Push"
    SECRET_KEY: str

    # --- BANCO DE DADOS ---
    SQLALCHEMY_DATABASE_URI: str

    # --- VAPID ---
    # Chave privada: escalar bruto de 32 bytes (base64url).
    # Chave pública: ponto não comprimido de 65 bytes (base64url), a mesma usada pelo app.
    VAPID_PRIVATE_KEY: str
    VAPID_PUBLIC_KEY: str
    VAPID_CLAIMS_EMAIL: str = "mailto:admin@levefit.com"
    VAPID_TOKEN_TTL_SECONDS: int = 12 * 60 * 60

    # --- ENTREGA PUSH ---
    PUSH_TTL_SECONDS: int = 86400
    PUSH_URGENCY: str = "high"
    PUSH_REQUEST_TIMEOUT_SECONDS: float = 10.0
    PUSH_DEFAULT_ICON: str = "/pwa-192x192.png"
    PUSH_DEFAULT_TAG: str = "levefit-notification"
    PUSH_DEFAULT_URL: str = "/dashboard"
    # False = corpo JSON em texto puro (comportamento do app). True = criptografado via pywebpush.
    PUSH_ENCRYPT_PAYLOAD: bool = False
    # Remove do banco inscrições que o serviço push responde com 404/410
    PUSH_PRUNE_EXPIRED: bool = True

    # --- AGENDAMENTO ---
    # Fuso fixo (minutos em relação a UTC). Brasília = -180.
    NOTIFICATION_UTC_OFFSET_MINUTES: int = -180
    CAPSULE_WINDOW_MINUTES: int = 2
    WATER_FIRST_HOUR: int = 7
    WATER_LAST_HOUR: int = 22
    DEFAULT_WATER_GOAL: int = 2000
    IMC_REMINDER_DAYS: int = 7
    # Reta final: kits com 0 a N dias restantes
    TREATMENT_END_WINDOW_DAYS: int = 5

    # Gatilhos internos (APScheduler). Em produção o gatilho costuma ser externo (cron).
    SCHEDULER_ENABLED: bool = False
    CAPSULE_INTERVAL_MINUTES: int = 5
    WATER_CHECK_INTERVAL_MINUTES: int = 15
    JOURNEY_DAILY_HOUR: int = 9
    IMC_REMINDER_HOUR: int = 10
    DAILY_SUMMARY_HOUR: int = 20
    TREATMENT_END_HOUR: int = 11

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
