"""Tests for the stored record envelope"""

import json

from mindscribe.models.records import EncryptedRecord, PlainRecord, dump_record, load_record


def test_plain_envelope():
    """Plain records are tagged and carry the value"""
    raw = dump_record(PlainRecord(value={"theme": "dark"}))
    assert json.loads(raw) == {"kind": "plain", "value": {"theme": "dark"}}

    record = load_record(raw)
    assert isinstance(record, PlainRecord)
    assert record.value == {"theme": "dark"}


def test_encrypted_envelope_uses_base64():
    """Encrypted records store nonce and ciphertext as base64 text"""
    record = EncryptedRecord(nonce=b"\x00" * 12, ciphertext=b"\xff\x01abc")
    raw = dump_record(record)
    data = json.loads(raw)
    assert data["kind"] == "encrypted"
    assert data["nonce"] == "AAAAAAAAAAAAAAAA"

    loaded = load_record(raw)
    assert isinstance(loaded, EncryptedRecord)
    assert loaded.nonce == b"\x00" * 12
    assert loaded.ciphertext == b"\xff\x01abc"


def test_legacy_plaintext_is_wrapped():
    """JSON written before envelopes existed comes back as a plain record"""
    legacy = json.dumps({"id": "old", "title": "Chat"})
    record = load_record(legacy)
    assert isinstance(record, PlainRecord)
    assert record.value == {"id": "old", "title": "Chat"}


def test_untagged_nonce_ciphertext_is_not_treated_as_encrypted():
    """Only the explicit tag marks a record as encrypted"""
    legacy = json.dumps({"nonce": [1, 2], "ciphertext": [3, 4]})
    record = load_record(legacy)
    assert isinstance(record, PlainRecord)


def test_garbage_is_unreadable():
    """Text that is not JSON yields no record"""
    assert load_record("not json at all {") is None


def test_malformed_encrypted_envelope_is_unreadable():
    """A tagged envelope that fails validation is never read as plaintext"""
    bad_base64 = json.dumps({"kind": "encrypted", "nonce": "AAAAAAAAAAAAAAAA", "ciphertext": "bmws!!!"})
    missing_field = json.dumps({"kind": "encrypted", "nonce": "AAAAAAAAAAAAAAAA"})

    assert load_record(bad_base64) is None
    assert load_record(missing_field) is None
