# backend/tests/test_credentials.py

import pytest

from sparkleap.credentials.crypto import CredentialCipher, CredentialDecryptError
from sparkleap.credentials.schemas import SourceType
from sparkleap.credentials.store import CredentialStore


def test_cipher_uses_fresh_iv_and_decrypts():
    cipher = CredentialCipher("secret-a")

    payload_1, iv_1 = cipher.encrypt('{"token": "abc"}')
    payload_2, iv_2 = cipher.encrypt('{"token": "abc"}')

    assert iv_1 != iv_2
    assert payload_1 != payload_2
    assert cipher.decrypt(payload_1, iv_1) == '{"token": "abc"}'


def test_decrypt_with_wrong_key_fails():
    payload, iv = CredentialCipher("secret-a").encrypt("hello")

    with pytest.raises(CredentialDecryptError):
        CredentialCipher("secret-b").decrypt(payload, iv)


def test_decrypt_rejects_malformed_hex():
    with pytest.raises(CredentialDecryptError):
        CredentialCipher("secret-a").decrypt("zz", "00" * 12)


def test_store_never_keeps_plaintext():
    store = CredentialStore(CredentialCipher("secret-a"))

    record = store.create("user-1", SourceType.NOTION, {"token": "super-secret-token"})

    assert "super-secret-token" not in record.model_dump_json()
    assert store.decrypt_payload(record) == {"token": "super-secret-token"}


def test_store_crud():
    store = CredentialStore(CredentialCipher("secret-a"))
    record = store.create("user-1", SourceType.NOTION, {"token": "t"})
    store.create("user-2", SourceType.STRIPE, {"api_key": "k"})

    assert store.get(record.source_id) == record
    assert [r.source_id for r in store.list_by_user("user-1")] == [record.source_id]

    updated = store.update(record.source_id, is_active=False)
    assert updated.is_active is False
    assert updated.updated_at >= record.updated_at

    assert store.update("missing", is_active=False) is None
    assert store.delete(record.source_id) is True
    assert store.delete(record.source_id) is False


def test_decrypt_payload_rejects_non_object_json():
    cipher = CredentialCipher("secret-a")
    store = CredentialStore(cipher)
    record = store.create("user-1", SourceType.NOTION, {"token": "t"})
    payload, iv = cipher.encrypt('["not", "an", "object"]')
    broken = record.model_copy(update={"encrypted_payload": payload, "iv": iv})

    with pytest.raises(CredentialDecryptError):
        store.decrypt_payload(broken)
