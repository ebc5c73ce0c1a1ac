"""Message definitions for the RCON protocol.

Every message is one JSON object pairing a tagged content variant with a
numeric id:

    {"type": "print", "id": 2, "content": {"printlevel": "high", "text": "Hi"}}

The ``type`` tag selects the variant and the shape ``content`` must have.
No-payload variants omit ``content`` (``null`` is accepted when decoding).

Client -> Server: login_request, login_password, command, maplist
Server -> Client: login_response, login_failure, login_success, print, maplist
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from ..errors import DecodeError
from .ids import IdSource
from .version import ProtocolVersion

U64 = Annotated[StrictInt, Field(ge=0, le=2**64 - 1)]
MessageId = Annotated[StrictInt, Field(ge=0)]


class PrintLevel(str, Enum):
    """Classification of server log lines."""

    PICKUP = "pickup"
    OBITUARY = "obituary"
    HIGH = "high"
    CHAT = "chat"
    TEAMCHAT = "teamchat"
    SERVERCHAT = "serverchat"
    WARNING = "warning"
    ERROR = "error"


class _Content(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# Client -> Server
# =============================================================================


class LoginRequest(_Content):
    """Opens a login, offering the client's protocol version."""

    type: Literal["login_request"] = "login_request"
    content: ProtocolVersion

    @field_validator("content", mode="before")
    @classmethod
    def _version_string(cls, value: Any) -> Any:
        # On the wire the version is always a string, never an object
        if isinstance(value, str | ProtocolVersion):
            return value
        raise ValueError("protocol version must be a 'major.minor.revision' string")


class LoginPassword(_Content):
    type: Literal["login_password"] = "login_password"
    content: StrictStr


class Command(_Content):
    """A console command to run on the server."""

    type: Literal["command"] = "command"
    content: StrictStr


class Maplist(_Content):
    type: Literal["maplist"] = "maplist"
    content: None = None


ClientContent = Annotated[
    LoginRequest | LoginPassword | Command | Maplist,
    Field(discriminator="type"),
]


# =============================================================================
# Server -> Client
# =============================================================================


class LoginResponse(_Content):
    type: Literal["login_response"] = "login_response"
    content: U64


class LoginFailure(_Content):
    """Login was rejected; content is the server's reason."""

    type: Literal["login_failure"] = "login_failure"
    content: StrictStr


class LoginSuccess(_Content):
    type: Literal["login_success"] = "login_success"
    content: None = None


class PrintPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    printlevel: PrintLevel
    text: StrictStr


class Print(_Content):
    """A line of server console output."""

    type: Literal["print"] = "print"
    content: PrintPayload

    @classmethod
    def of(cls, printlevel: PrintLevel, text: str) -> Print:
        return cls(content=PrintPayload(printlevel=printlevel, text=text))

    @property
    def printlevel(self) -> PrintLevel:
        return self.content.printlevel

    @property
    def text(self) -> str:
        return self.content.text


class ServerMaplist(_Content):
    type: Literal["maplist"] = "maplist"
    content: None = None


ServerContent = Annotated[
    LoginResponse | LoginFailure | LoginSuccess | Print | ServerMaplist,
    Field(discriminator="type"),
]


# =============================================================================
# Envelope
# =============================================================================

M = TypeVar("M", bound="Message")


class Message(BaseModel):
    """Envelope pairing a content variant with its id.

    Subclasses fix the set of content variants allowed for one direction.
    The content fields are flattened into the envelope on the wire.
    """

    model_config = ConfigDict(frozen=True)

    direction: ClassVar[str] = ""

    content: Any
    id: MessageId

    @classmethod
    def new(cls: type[M], content: Any, ids: IdSource) -> M:
        """Wrap content in an envelope, allocating the next id from ``ids``."""
        return cls(content=content, id=ids.next_id())

    def to_wire(self) -> dict[str, Any]:
        """Wire form as a plain dict."""
        data = self.content.model_dump(mode="json", exclude_none=True)
        data["id"] = self.id
        return data

    def serialize(self) -> str:
        """Encode as a single-line JSON object."""
        return json.dumps(self.to_wire())

    def describe(self) -> str:
        """Pretty-printed JSON, for showing received messages to a user."""
        return json.dumps(self.to_wire(), indent=2)

    @classmethod
    def parse(cls: type[M], text: str | bytes) -> M:
        """Decode a wire message.

        The whole envelope is rejected if any part of it is invalid; there
        are no partially decoded messages.

        Raises:
            DecodeError: If the text is not JSON, the tag is unknown for this
                direction, the payload does not match the tag, or the id is
                missing or not a non-negative integer
        """
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError, bad UTF-8, oversized integers, runaway nesting
            raise DecodeError(f"Invalid JSON: {e}", _as_text(text)) from e

        if not isinstance(data, dict):
            raise DecodeError(
                f"Expected a JSON object, got {type(data).__name__}", _as_text(text)
            )
        if "id" not in data:
            raise DecodeError("Missing field 'id'", _as_text(text))

        content = {key: value for key, value in data.items() if key != "id"}
        try:
            return cls.model_validate({"content": content, "id": data["id"]})
        except ValidationError as e:
            raise DecodeError(f"Invalid {cls.direction} message: {e}", _as_text(text)) from e


class ClientMessage(Message):
    """Message sent from the client to the server."""

    direction: ClassVar[str] = "client"

    content: ClientContent


class ServerMessage(Message):
    """Message sent from the server to the client."""

    direction: ClassVar[str] = "server"

    content: ServerContent


def serialize(message: Message) -> str:
    """Encode a message of either direction."""
    return message.serialize()


def parse(
    text: str | bytes, message_type: type[M] = ServerMessage  # type: ignore[assignment]
) -> M:
    """Decode ``text`` as ``message_type`` (server messages by default)."""
    return message_type.parse(text)


def _as_text(text: str | bytes) -> str:
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace")
    return text
