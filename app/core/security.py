from jose import jwt

from app.core.config import settings

ALGORITHM = "HS256"

def decode_access_token(token: str) -> dict:
    """
    Valida o token de sessão emitido pelo login do app (cookie 'access_token').
    Levanta JWTError se a assinatura ou a expiração não conferirem.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
