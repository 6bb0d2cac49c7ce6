import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from app.models.subscription import PushSubscription

logger = logging.getLogger(__name__)

class SubscriptionRegistry:
    """
    Lado servidor das inscrições push: uma linha por usuário.
    Substituição é sempre delete + insert explícito (sem upsert), pois o modelo
    não tem identificador de dispositivo. Vários dispositivos por usuário não são suportados.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_for_user(self, user_id: int) -> Optional[PushSubscription]:
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.id.desc())
            .first()
        )

    def list_for_user(self, user_id: int) -> List[PushSubscription]:
        return self.db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()

    def user_ids_with_subscriptions(self) -> List[int]:
        rows = self.db.query(PushSubscription.user_id).distinct().order_by(PushSubscription.user_id).all()
        return [r[0] for r in rows]

    def replace_for_user(self, user_id: int, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
        """Remove qualquer inscrição anterior do usuário e grava a nova (last-write-wins)."""
        removed = self.db.query(PushSubscription).filter(PushSubscription.user_id == user_id).delete(
            synchronize_session="fetch"
        )
        sub = PushSubscription(user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth)
        self.db.add(sub)
        self.db.commit()
        self.db.refresh(sub)
        if removed:
            logger.info(f"🔁 Inscrição do usuário {user_id} substituída ({removed} antiga(s) removida(s))")
        else:
            logger.info(f"🔔 Nova inscrição para o usuário {user_id}")
        return sub

    def delete_for_user(self, user_id: int) -> int:
        removed = self.db.query(PushSubscription).filter(PushSubscription.user_id == user_id).delete(
            synchronize_session="fetch"
        )
        self.db.commit()
        if removed:
            logger.info(f"🗑️ Inscrição do usuário {user_id} removida")
        return removed

    def delete(self, subscription: PushSubscription) -> None:
        self.db.delete(subscription)
        self.db.commit()
