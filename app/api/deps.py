from typing import Generator
from fastapi import Depends, HTTPException, status, Request
from jose import JWTError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core import security
from app.models.user import User
from app.services.push import PushService

def get_db() -> Generator:
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()

def get_push_service() -> Generator:
    with PushService() as push_service:
        yield push_service

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Lê o cookie 'access_token', decodifica e busca o usuário.
    """
    token_str = request.cookies.get("access_token")

    if not token_str:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autenticado (Cookie ausente)",
        )

    # O token vem como "Bearer eyJhbGci..."
    try:
        scheme, token = token_str.split()
        if scheme.lower() != "bearer":
            raise HTTPException(status_code=401, detail="Formato de token inválido")

        payload = security.decode_access_token(token)
        user_id = payload.get("sub")

        if user_id is None:
            raise HTTPException(status_code=401, detail="Token inválido (sem ID)")
        user_id = int(user_id)

    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail="Token expirado ou inválido")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Usuário inativo")

    return user
