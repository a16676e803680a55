## Request/response envelopes of the /run procedure
import base64
from typing import Literal

from pydantic import Base64Bytes, BaseModel


class RunRequest(BaseModel):
    task_id: str
    input: Base64Bytes
    encoding: Literal["msgpack", "json"] = "msgpack"


class RunResponse(BaseModel):
    # Base64Bytes decodes on validation, so build instances through the helpers
    output: Base64Bytes = b""
    ok: bool
    error: str = ""

    @classmethod
    def success(cls, output: bytes) -> "RunResponse":
        return cls(output=base64.b64encode(output), ok=True)

    @classmethod
    def failure(cls, error: str) -> "RunResponse":
        return cls(ok=False, error=error)
