try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from vehicle_gateway.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")

    encrypted = cipher.encrypt("smartcar-access-token")

    assert encrypted != "smartcar-access-token"
    assert cipher.decrypt(encrypted) == "smartcar-access-token"


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_token_cipher_reads_tokens_written_with_retired_secret() -> None:
    old = TokenCipherService(secret="old-secret")
    rotated = TokenCipherService(secret="new-secret", previous_secrets=["old-secret"])

    assert rotated.decrypt(old.encrypt("refresh-token")) == "refresh-token"
    with pytest.raises(ValueError):
        old.decrypt(rotated.encrypt("refresh-token"))


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
