import base64
import binascii
import hashlib
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config import get_settings

CIPHERTEXT_PREFIX = "enc:v1:"
NONCE_SIZE = 12


class DecryptionError(Exception):
    """Ciphertext is malformed or was produced under a different key."""


def derive_key(master_key: str) -> bytes:
    return hashlib.sha256(master_key.encode()).digest()


# --- AES-256-GCM for sensitive medical fields at rest ---

class FieldCipher:
    def __init__(self, key: bytes):
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        encoded = base64.b64encode(nonce + ciphertext).decode()
        return f"{CIPHERTEXT_PREFIX}{encoded}"

    def decrypt(self, token: str) -> str:
        if not isinstance(token, str) or not token.startswith(CIPHERTEXT_PREFIX):
            raise DecryptionError("Unrecognised ciphertext format")
        try:
            raw = base64.b64decode(token[len(CIPHERTEXT_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e
        if len(raw) <= NONCE_SIZE:
            raise DecryptionError("Ciphertext too short")
        nonce, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionError("Ciphertext failed authentication") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Plaintext is not valid UTF-8") from e


@lru_cache()
def get_cipher() -> FieldCipher:
    return FieldCipher(derive_key(get_settings().ENCRYPTION_MASTER_KEY))
