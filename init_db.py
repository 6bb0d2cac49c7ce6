# init_db.py
from app.db.session import engine
from app.db.base import Base

# IMPORTANTE: Importar todos os modelos aqui para que o SQLAlchemy
# saiba que eles existem antes de criar as tabelas
from app.models.user import User
from app.models.profile import Profile
from app.models.subscription import PushSubscription
from app.models.notification_settings import NotificationSettings
from app.models.activity import CapsuleDay, WaterIntakeHistory, ProgressHistory


def init_db():
    print("Conectando ao banco de dados...")
    print("Criando tabelas...")

    Base.metadata.create_all(bind=engine)

    print("Tabelas criadas com sucesso!")

if __name__ == "__main__":
    init_db()
