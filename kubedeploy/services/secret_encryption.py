"""
Secret Encryption Service for Kubernetes Secret documents kept outside the cluster.

Values in a Secret's ``data`` map are base64 in the cluster. This module adds
an optional envelope on top: every value is encrypted independently with
AES-256-CBC so an encrypted Secret can be committed to version control and
decrypted (fully or partially) later.

Key derivation:
- key = scrypt(passphrase, salt=passphrase[:16], 32 bytes, N=2^14, r=8, p=1)
- iv  = scrypt(hex(key), salt=hex(key)[:16], 16 bytes)

Ciphertext is hex encoded. The IV is derived from the passphrase, so the same
plaintext and passphrase always give the same ciphertext.
"""
import base64
import copy
import logging
from typing import Any, Dict, Optional, Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from ..config import get_settings

logger = logging.getLogger(__name__)

SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


class SecretEncryptionError(Exception):
    """Base exception for secret encryption errors."""
    pass


def _scrypt(secret: str, length: int) -> bytes:
    kdf = Scrypt(salt=secret[:16].encode(), length=length, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode())


def derive_key(passphrase: str) -> Tuple[bytes, bytes]:
    """
    Derive the AES key and IV for a passphrase.

    Returns:
        (32-byte key, 16-byte IV)
    """
    key = _scrypt(passphrase, 32)
    iv = _scrypt(key.hex(), 16)
    return key, iv


def _encrypt(plaintext: str, key: bytes, iv: bytes) -> str:
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode()) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return (encryptor.update(padded) + encryptor.finalize()).hex()


def _decrypt(ciphertext: str, key: bytes, iv: bytes) -> str:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(bytes.fromhex(ciphertext)) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    return (unpadder.update(padded) + unpadder.finalize()).decode()


def encrypt(text: str, passphrase: str) -> str:
    """
    Encrypt a text string.

    Example:
        >>> encrypt("Th3$m1t4$", "thereisalightthatnevergoesout")
        "5baec0da09a567b4598e72e474785dc2"
    """
    return SecretEncryptionService(passphrase).encrypt(text)


def decrypt(text: str, passphrase: str) -> str:
    """Decrypt a hex encoded string produced by encrypt()."""
    return SecretEncryptionService(passphrase).decrypt(text)


# =============================================================================
# Secret documents
# =============================================================================

def _b64(value: Any) -> str:
    return base64.b64encode(str(value).encode()).decode()


def encode_secret(name: str, data: Dict[str, str]) -> Dict[str, Any]:
    """
    Create an Opaque Secret document from plaintext key/value pairs.

    Args:
        name: Secret name
        data: Plaintext values, base64 encoded in the returned document

    Returns:
        Secret document
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "Opaque",
        "metadata": {
            "name": name,
        },
        "data": {key: _b64(value) for key, value in data.items()},
    }


def promote_string_data(secret: Dict[str, Any]) -> Dict[str, Any]:
    """
    Move ``stringData`` values into ``data``, base64 encoding them.

    Keys in stringData win over existing keys in data. The document is
    modified in place and returned.
    """
    string_data = secret.pop("stringData", None)
    if string_data:
        data = secret.get("data") or {}
        for key, value in string_data.items():
            data[key] = _b64(value)
        secret["data"] = data
    return secret


class SecretEncryptionService:
    """
    Encrypts and decrypts Secret values with one passphrase.

    Key derivation is expensive (scrypt), so the derived key and IV are
    computed once per service instance.
    """

    def __init__(self, passphrase: str):
        """
        Args:
            passphrase: Encryption passphrase

        Raises:
            SecretEncryptionError: If the passphrase is empty or key derivation fails
        """
        if not passphrase:
            raise SecretEncryptionError("No encryption key available. Set SECRET_ENCRYPTION_KEY.")

        try:
            self._key, self._iv = derive_key(passphrase)
        except Exception as e:
            logger.error(f"[CRYPTO] Failed to derive secret encryption key: {e}", exc_info=True)
            raise SecretEncryptionError(f"Key derivation failed: {e}") from e

        logger.debug("[CRYPTO] Secret encryption service initialized")

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt one value.

        Raises:
            SecretEncryptionError: If encryption fails
        """
        try:
            return _encrypt(plaintext, self._key, self._iv)
        except Exception as e:
            logger.error(f"[CRYPTO] Encryption failed: {e}", exc_info=True)
            raise SecretEncryptionError(f"Failed to encrypt value: {e}") from e

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt one hex encoded value.

        Raises:
            SecretEncryptionError: If the value is not valid ciphertext for this key
        """
        try:
            return _decrypt(ciphertext, self._key, self._iv)
        except Exception as e:
            logger.error(f"[CRYPTO] Decryption failed: {e}")
            raise SecretEncryptionError(
                "Failed to decrypt value. The encryption key may be wrong or the data is corrupted."
            ) from e

    def encrypt_secret(self, secret: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of a Secret document with every data value encrypted.

        stringData is promoted into data first. The provided document is
        not modified.
        """
        encrypted = promote_string_data(copy.deepcopy(secret))
        data = encrypted.get("data") or {}
        for key in data:
            data[key] = self.encrypt(data[key])
        logger.debug(f"[CRYPTO] Encrypted {len(data)} secret value(s)")
        return encrypted

    def decrypt_secret(self, secret: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of a Secret document with every data value decrypted
        back to its base64 form. The provided document is not modified.
        """
        decrypted = copy.deepcopy(secret)
        data = decrypted.get("data") or {}
        for key in data:
            data[key] = self.decrypt(data[key])
        logger.debug(f"[CRYPTO] Decrypted {len(data)} secret value(s)")
        return decrypted


def encrypt_secret(secret: Dict[str, Any], passphrase: str) -> Dict[str, Any]:
    """Encrypt the data values of a Secret document with a passphrase."""
    return SecretEncryptionService(passphrase).encrypt_secret(secret)


def decrypt_secret(secret: Dict[str, Any], passphrase: str) -> Dict[str, Any]:
    """Decrypt the data values of a Secret document with a passphrase."""
    return SecretEncryptionService(passphrase).decrypt_secret(secret)


# Global singleton instance
_secret_encryption_service: Optional[SecretEncryptionService] = None


def get_secret_encryption_service() -> SecretEncryptionService:
    """
    Get or create the global secret encryption service from settings.

    Raises:
        SecretEncryptionError: If SECRET_ENCRYPTION_KEY is not set
    """
    global _secret_encryption_service

    if _secret_encryption_service is None:
        logger.debug("[CRYPTO] Initializing global secret encryption service")
        _secret_encryption_service = SecretEncryptionService(get_settings().secret_encryption_key)

    return _secret_encryption_service


def reset_secret_encryption_service() -> None:
    """Drop the global instance, e.g. after the key setting changed."""
    global _secret_encryption_service
    _secret_encryption_service = None
