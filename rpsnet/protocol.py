"""Message model and framing for the rpsnet wire protocol.

A frame is the JSON form of a :class:`Message` followed by
``MESSAGE_DELIMITER``, encoded as UTF-8. Decoding strips every occurrence
of the delimiter and parses what is left, so a message whose text contains
the delimiter does not survive a round trip.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .wire_constants import MESSAGE_DELIMITER, MESSAGE_ENCODING


class ProtocolError(Exception):
    """Raised when a received frame cannot be parsed into a Message."""


class ResponseCode(str, Enum):
    ACK = "ACK"
    END = "END"
    REF = "REF"
    SOL = "SOL"
    MES = "MES"
    CON = "CON"

    @property
    def label(self) -> str:
        return _CODE_LABELS[self]


_CODE_LABELS = {
    ResponseCode.ACK: "Acknowledgement",
    ResponseCode.END: "End",
    ResponseCode.REF: "Reference",
    ResponseCode.SOL: "Solution",
    ResponseCode.MES: "Message",
    ResponseCode.CON: "Connection",
}


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    player_name: str | None = Field(default=None, alias="playerName")
    code: ResponseCode

    def __str__(self) -> str:
        return f"[Text: '{self.text}', Player: '{self.player_name}', Code: {self.code.label}]"


def encode_message(message: Message) -> bytes:
    payload = message.model_dump_json(by_alias=True)
    return f"{payload}{MESSAGE_DELIMITER}".encode(MESSAGE_ENCODING)


def decode_message(data: bytes) -> Message | None:
    """Parse one received chunk. Returns None for an empty read."""
    if not data:
        return None
    try:
        raw = data.decode(MESSAGE_ENCODING)
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Frame is not valid {MESSAGE_ENCODING}") from e
    payload = raw.replace(MESSAGE_DELIMITER, "")
    if not payload.strip():
        return None
    try:
        return Message.model_validate_json(payload)
    except ValidationError as e:
        raise ProtocolError(f"Malformed message frame: {payload[:80]!r}") from e
