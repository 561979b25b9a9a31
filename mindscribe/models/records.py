"""
Stored record envelope

Every value written by an EncryptedStore is wrapped in a tagged envelope so
the reader never has to guess whether a blob is encrypted:

    {"kind": "plain", "value": ...}
    {"kind": "encrypted", "nonce": "<base64>", "ciphertext": "<base64>"}
"""

import json
import logging
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class PlainRecord(BaseModel):
    """Record stored as plaintext JSON"""
    kind: Literal["plain"] = "plain"
    value: Any = None


class EncryptedRecord(BaseModel):
    """AES-GCM sealed record (the auth tag is appended to ciphertext)"""
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    kind: Literal["encrypted"] = "encrypted"
    nonce: bytes
    ciphertext: bytes


StoredRecord = Annotated[
    Union[PlainRecord, EncryptedRecord],
    Field(discriminator="kind"),
]

_record_adapter: TypeAdapter = TypeAdapter(StoredRecord)


def dump_record(record: Union[PlainRecord, EncryptedRecord]) -> str:
    """Serialize an envelope to JSON text"""
    return record.model_dump_json()


def load_record(raw: str) -> Optional[Union[PlainRecord, EncryptedRecord]]:
    """
    Parse stored JSON text into an envelope

    Values written before envelopes existed are plain JSON; they come back
    wrapped in a PlainRecord. Text that is not JSON, or a malformed
    encrypted envelope, returns None.
    """
    try:
        return _record_adapter.validate_json(raw)
    except ValidationError:
        pass

    try:
        legacy_value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable stored record (not JSON)")
        return None
    # A broken encrypted envelope is unreadable, never legacy plaintext
    if isinstance(legacy_value, dict) and legacy_value.get("kind") == "encrypted":
        logger.warning("Unreadable stored record (malformed encrypted envelope)")
        return None
    return PlainRecord(value=legacy_value)
