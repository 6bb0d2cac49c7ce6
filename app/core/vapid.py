"""
Assinatura VAPID (RFC 8292).

O token é um JWT ES256 curto, com `aud` = origem do endpoint push, assinado com
o par de chaves fixo do servidor. As chaves chegam em formato bruto (escalar de
32 bytes e ponto não comprimido de 65 bytes, ambos base64url) e são convertidas
para um objeto de chave do `cryptography` antes de assinar com python-jose.
"""
import base64
import binascii
import time
from functools import lru_cache
from typing import Optional, Tuple
from urllib.parse import urlsplit

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt
from jose.exceptions import JOSEError

from app.core.config import settings
from app.core.errors import VapidKeyError

ALGORITHM = "ES256"


def b64url_decode(value: str) -> bytes:
    # Aceita base64url com ou sem padding (e base64 padrão, como o app às vezes envia)
    value = value.strip().replace("+", "-").replace("/", "_")
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_vapid_keys() -> Tuple[str, str]:
    """
    Novo par P-256 para rotação manual: (chave pública, chave privada), ambas base64url.
    A pública (ponto de 65 bytes) vai para o app; a privada (escalar de 32 bytes) para VAPID_PRIVATE_KEY.
    Trocar as chaves invalida as inscrições existentes: os clientes precisam recriá-las.
    """
    private = ec.generate_private_key(ec.SECP256R1())
    public_point = private.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    scalar = private.private_numbers().private_value.to_bytes(32, "big")
    return b64url_encode(public_point), b64url_encode(scalar)


@lru_cache(maxsize=8)
def load_private_key_pem(private_key: str, public_key: str) -> str:
    """Reconstrói a chave P-256 a partir do material bruto e devolve em PEM (PKCS8)."""
    try:
        scalar = b64url_decode(private_key)
        point = b64url_decode(public_key)
    except (binascii.Error, ValueError) as e:
        raise VapidKeyError(f"Chave VAPID não é base64url válido: {e}") from e

    if len(scalar) != 32:
        raise VapidKeyError(f"Chave privada VAPID deve ter 32 bytes (recebido {len(scalar)})")
    if len(point) != 65 or point[0] != 0x04:
        raise VapidKeyError("Chave pública VAPID deve ser um ponto P-256 não comprimido de 65 bytes")

    try:
        private = ec.derive_private_key(int.from_bytes(scalar, "big"), ec.SECP256R1())
        public = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), point)
    except ValueError as e:
        raise VapidKeyError(f"Material de chave VAPID inválido: {e}") from e

    if private.public_key().public_numbers() != public.public_numbers():
        raise VapidKeyError("Chave privada VAPID não corresponde à chave pública configurada")

    return private.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def audience_for(endpoint: str) -> str:
    """Origem (scheme://host[:porta]) de um endpoint push."""
    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Endpoint push inválido: {endpoint!r}")
    return f"{parts.scheme}://{parts.netloc}"


class VapidSigner:

    def __init__(self, private_key: str, public_key: str, subject: str, ttl_seconds: int = 12 * 60 * 60):
        self.private_key = private_key
        self.public_key = public_key
        self.subject = subject
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls) -> "VapidSigner":
        return cls(
            private_key=settings.VAPID_PRIVATE_KEY,
            public_key=settings.VAPID_PUBLIC_KEY,
            subject=settings.VAPID_CLAIMS_EMAIL,
            ttl_seconds=settings.VAPID_TOKEN_TTL_SECONDS,
        )

    def create_token(self, audience: str, now: Optional[float] = None) -> str:
        """JWT compacto: header {alg: ES256, typ: JWT}, claims {aud, iat, exp, sub}."""
        pem = load_private_key_pem(self.private_key, self.public_key)
        issued_at = int(now if now is not None else time.time())
        claims = {
            "aud": audience,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "sub": self.subject,
        }
        try:
            return jwt.encode(claims, pem, algorithm=ALGORITHM)
        except JOSEError as e:
            raise VapidKeyError(f"Falha ao assinar token VAPID: {e}") from e

    def authorization_header(self, endpoint: str, now: Optional[float] = None) -> str:
        token = self.create_token(audience_for(endpoint), now=now)
        return f"vapid t={token}, k={self.public_key}"
