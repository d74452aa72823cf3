from pydantic import BaseModel, Field, ValidationError, constr
from typing import Any, Dict, List, Literal, Optional, Type
from core.exceptions import MalformedMessage, UnknownMessageType
from core.settings import IceServer

PeerId = constr(min_length=1)

# Inbound messages (client -> relay)

class InboundMessage(BaseModel):
  type: str

  class Config:
    extra = "allow"
    populate_by_name = True

class RegisterMessage(InboundMessage):
  type: Literal["register"]
  peerId: PeerId

class OfferCreateMessage(InboundMessage):
  type: Literal["offer-create"]
  from_: PeerId = Field(alias="from")
  to: PeerId
  offer: Any  # may be null while the caller has no local description yet

class OfferAcceptMessage(InboundMessage):
  type: Literal["offer-accept"]
  from_: PeerId = Field(alias="from")
  to: PeerId

class OfferDeclineMessage(InboundMessage):
  type: Literal["offer-decline"]
  from_: PeerId = Field(alias="from")
  to: PeerId

class OfferMessage(InboundMessage):
  type: Literal["offer"]
  to: PeerId
  offer: Any

class AnswerMessage(InboundMessage):
  type: Literal["answer"]
  to: PeerId
  answer: Any

class CandidateMessage(InboundMessage):
  type: Literal["candidate"]
  to: PeerId
  candidate: Any

class LeaveMessage(InboundMessage):
  type: Literal["leave"]
  to: PeerId

class PongMessage(InboundMessage):
  type: Literal["pong"]
  nonce: Optional[str] = None
  message: Optional[str] = None

INBOUND_MESSAGE_SCHEMAS: Dict[str, Type[InboundMessage]] = {
  "register": RegisterMessage,
  "offer-create": OfferCreateMessage,
  "offer-accept": OfferAcceptMessage,
  "offer-decline": OfferDeclineMessage,
  "offer": OfferMessage,
  "answer": AnswerMessage,
  "candidate": CandidateMessage,
  "leave": LeaveMessage,
  "pong": PongMessage,
}

# Tags used by the first browser client
LEGACY_MESSAGE_TYPES = {
  "setPeerId": "register",
  "offerCreate": "offer-create",
  "offerAccept": "offer-accept",
  "offerDecline": "offer-decline",
}

# Negotiation steps relayed as {type, from, <payload field>}
RELAY_PAYLOAD_FIELDS = {
  "offer": "offer",
  "answer": "answer",
  "candidate": "candidate",
}

def describe_validation_error(error: ValidationError) -> str:
  return "; ".join(
    f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
    for err in error.errors()
  )

def parse_signaling_message(payload: Any) -> InboundMessage:
  """
  Validate a decoded JSON payload against the schema for its type.

  Raises UnknownMessageType for a missing or unrecognized type and
  MalformedMessage when the payload does not carry the fields its type needs.
  """
  if not isinstance(payload, dict):
    raise MalformedMessage("expected a JSON object")

  message_type = payload.get("type")
  if not isinstance(message_type, str):
    raise UnknownMessageType(message_type)

  message_type = LEGACY_MESSAGE_TYPES.get(message_type, message_type)
  schema = INBOUND_MESSAGE_SCHEMAS.get(message_type)
  if schema is None:
    raise UnknownMessageType(message_type)

  try:
    return schema.model_validate({**payload, "type": message_type})
  except ValidationError as e:
    raise MalformedMessage(describe_validation_error(e)) from e

# Outbound messages (relay -> client)

class OutboundMessage(BaseModel):
  type: str

  class Config:
    populate_by_name = True

  def to_wire(self) -> dict:
    return self.model_dump(by_alias=True, exclude_none=True)

class PingMessage(OutboundMessage):
  type: Literal["ping"] = "ping"
  nonce: str
  iceServers: List[IceServer]

class RegisterAckMessage(OutboundMessage):
  type: Literal["register-ack"] = "register-ack"
  peerId: str

class RegisterErrorMessage(OutboundMessage):
  type: Literal["register-error"] = "register-error"
  peerId: str
  message: str

class NotFoundMessage(OutboundMessage):
  type: Literal["not-found"] = "not-found"
  peerId: str

class ErrorMessage(OutboundMessage):
  type: Literal["error"] = "error"
  from_: Optional[str] = Field(default=None, alias="from")
  message: str

class LeaveNoticeMessage(OutboundMessage):
  type: Literal["leave"] = "leave"
  from_: str = Field(alias="from")
