## Payload codecs for the /run boundary
import json
from typing import Type, TypeVar

import msgpack
from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


class CodecError(ValueError):
    pass


class MsgPackCodec:
    """MessagePack maps keyed by field name. Default wire format."""

    name = "msgpack"

    def encode(self, value: BaseModel) -> bytes:
        try:
            return msgpack.packb(value.model_dump(mode="json"), use_bin_type=True)
        except Exception as e:
            raise CodecError(f"{type(e).__name__}: {e}") from e

    def decode(self, data: bytes, model: Type[M]) -> M:
        try:
            raw = msgpack.unpackb(data, raw=False)
            return model.model_validate(raw)
        except Exception as e:
            raise CodecError(f"{type(e).__name__}: {e}") from e


class JsonCodec:
    """Readable alternative for debugging tools."""

    name = "json"

    def encode(self, value: BaseModel) -> bytes:
        try:
            return value.model_dump_json().encode("utf-8")
        except Exception as e:
            raise CodecError(f"{type(e).__name__}: {e}") from e

    def decode(self, data: bytes, model: Type[M]) -> M:
        try:
            return model.model_validate(json.loads(data))
        except Exception as e:
            raise CodecError(f"{type(e).__name__}: {e}") from e


CODECS = {c.name: c for c in (MsgPackCodec(), JsonCodec())}


def get_codec(name: str):
    codec = CODECS.get(name)
    if codec is None:
        raise CodecError(f"Unknown encoding {name!r}, expected one of {sorted(CODECS)}")
    return codec
