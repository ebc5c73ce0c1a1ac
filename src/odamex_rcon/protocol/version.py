"""Protocol version carried by login requests."""

from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_serializer, model_validator

from ..errors import DecodeError

_SEGMENT = re.compile(r"[0-9]+")
_SEGMENT_NAMES = ("major", "minor", "revision")

Byte = Annotated[StrictInt, Field(ge=0, le=255)]


class ProtocolVersion(BaseModel):
    """RCON protocol version, encoded on the wire as ``"major.minor.revision"``.

    Only equality is defined; versions are not ordered.
    """

    model_config = ConfigDict(frozen=True)

    major: Byte
    minor: Byte
    revision: Byte

    @classmethod
    def parse(cls, text: str) -> ProtocolVersion:
        """Parse ``"M.m.r"``.

        Each segment must be plain ASCII digits in the range 0-255. Out of
        range values are rejected rather than clamped.

        Raises:
            DecodeError: If the text is not exactly three byte-sized segments
        """
        parts = text.split(".")
        if len(parts) != 3:
            raise DecodeError("Expected format 'major.minor.revision'", text)

        values: list[int] = []
        for name, part in zip(_SEGMENT_NAMES, parts, strict=True):
            digits = part.lstrip("0") or "0"
            # Length check first: int() refuses very long digit strings
            if not _SEGMENT.fullmatch(part) or len(digits) > 3 or int(digits) > 255:
                raise DecodeError(f"Invalid {name} version: {part[:16]!r}", text)
            values.append(int(digits))

        major, minor, revision = values
        return cls(major=major, minor=minor, revision=revision)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if isinstance(data, str):
            parsed = cls.parse(data)
            return {"major": parsed.major, "minor": parsed.minor, "revision": parsed.revision}
        return data

    @model_serializer
    def _to_wire(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}"


LATEST_PROTOCOL_VERSION = ProtocolVersion(major=1, minor=0, revision=0)
