"""Refresh-token encryption at rest using Fernet symmetric encryption."""

from collections.abc import Iterable

from cryptography.fernet import Fernet, MultiFernet


class TokenEncryptor:
    """Encrypts and decrypts provider tokens.

    New ciphertext is always produced with *key*. Values written under any of
    *previous_keys* stay readable, so the key can be rotated without forcing
    every user to reconnect; the next write re-encrypts with the current key.
    """

    def __init__(self, key: str, previous_keys: Iterable[str] = ()) -> None:
        fernets = [Fernet(key.encode())]
        fernets.extend(Fernet(old.encode()) for old in previous_keys if old)
        self._fernet = MultiFernet(fernets)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string, returning base64-encoded ciphertext."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt ciphertext produced under the current or any previous key.

        Raises:
            cryptography.fernet.InvalidToken: If no configured key matches.
        """
        return self._fernet.decrypt(ciphertext.encode()).decode()
