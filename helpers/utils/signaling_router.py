from core.exceptions import IdentityCollision, MalformedMessage, RecipientUnknown, UnknownMessageType
from core.settings import IceServer
from helpers.utils.generate_unique_id import generate_unique_id
from helpers.utils.peer_connection import PeerConnection
from helpers.utils.websocket_connection_manager import ConnectionManager
from schemas.signaling.signaling_schema import (
  INBOUND_MESSAGE_SCHEMAS,
  RELAY_PAYLOAD_FIELDS,
  ErrorMessage,
  InboundMessage,
  LeaveMessage,
  LeaveNoticeMessage,
  NotFoundMessage,
  OfferAcceptMessage,
  OfferCreateMessage,
  OfferDeclineMessage,
  PingMessage,
  PongMessage,
  RegisterAckMessage,
  RegisterErrorMessage,
  RegisterMessage,
  parse_signaling_message,
)
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
import json
import logging

logger = logging.getLogger(__name__)

UNKNOWN_COMMAND = "unknown command"
NOT_REGISTERED = "register a peer id first"

class SignalingRouter:
  """
  Routes signaling messages between registered peers.

  Holds no state of its own; every peer id lookup and mutation goes through
  the ConnectionManager it was built with.
  """

  def __init__(self, connection_manager: ConnectionManager, ice_servers: Optional[List[IceServer]] = None):
    self.connection_manager = connection_manager
    self.ice_servers = list(ice_servers or [])
    self._handlers: Dict[str, Callable[[PeerConnection, Any], Awaitable[None]]] = {
      "register": self._handle_register,
      "offer-create": self._handle_offer_create,
      "offer-accept": self._handle_offer_accept,
      "offer-decline": self._handle_offer_decline,
      "offer": self._handle_relay,
      "answer": self._handle_relay,
      "candidate": self._handle_relay,
      "leave": self._handle_leave,
      "pong": self._handle_pong,
    }
    missing = set(INBOUND_MESSAGE_SCHEMAS) - set(self._handlers)
    if missing:
      raise RuntimeError(f"No handler for message types: {sorted(missing)}")

  async def connect(self, connection: PeerConnection):
    """Send the liveness ping; must be the first frame on a new connection."""
    connection.ping_nonce = generate_unique_id()
    ping = PingMessage(nonce=connection.ping_nonce, iceServers=self.ice_servers)
    await connection.send(ping.to_wire())
    logger.info("Connection %s opened", connection.connection_id)

  def disconnect(self, connection: PeerConnection):
    peer_id = self.connection_manager.unregister(connection)
    if peer_id is not None:
      logger.info("Peer '%s' disconnected. Remaining: %d", peer_id, len(self.connection_manager))
    else:
      logger.info("Connection %s closed without a peer id", connection.connection_id)

  async def handle_text(self, connection: PeerConnection, text: Union[str, bytes]):
    try:
      if isinstance(text, bytes):
        text = text.decode("utf-8")
      payload = json.loads(text)
    except UnicodeDecodeError:
      logger.warning("Binary frame from %s is not UTF-8", connection.connection_id)
      await self._send_error(connection, "malformed message: frame is not UTF-8 text")
      return
    except (ValueError, RecursionError):
      logger.warning("Invalid JSON from %s", connection.connection_id)
      await self._send_error(connection, "malformed message: invalid JSON")
      return
    await self.dispatch(connection, payload)

  async def dispatch(self, connection: PeerConnection, payload: Any):
    try:
      message = parse_signaling_message(payload)
    except UnknownMessageType as e:
      logger.warning("Unknown message type %r from %s", e.message_type, connection.connection_id)
      await self._send_error(connection, UNKNOWN_COMMAND)
      return
    except MalformedMessage as e:
      logger.warning("Malformed message from %s: %s", connection.connection_id, e)
      await self._send_error(connection, f"malformed message: {e}")
      return

    await self._handlers[message.type](connection, message)

  # Handlers

  async def _handle_register(self, connection: PeerConnection, message: RegisterMessage):
    try:
      self.connection_manager.register(message.peerId, connection)
    except IdentityCollision as e:
      logger.info("Connection %s rejected: '%s' is taken", connection.connection_id, message.peerId)
      reply = RegisterErrorMessage(peerId=message.peerId, message=str(e))
      await connection.send(reply.to_wire())
      return

    logger.info("Peer '%s' registered on %s. Total peers: %d", message.peerId, connection.connection_id, len(self.connection_manager))
    await connection.send(RegisterAckMessage(peerId=message.peerId).to_wire())

  async def _handle_offer_create(self, connection: PeerConnection, message: OfferCreateMessage):
    sender = await self._require_identity(connection)
    if sender is None:
      return

    try:
      recipient = self._resolve(message.to)
    except RecipientUnknown as e:
      await connection.send(NotFoundMessage(peerId=e.peer_id).to_wire())
      return

    forwarded = message.model_dump(by_alias=True)
    forwarded["from"] = sender
    logger.info("Call request from '%s' to '%s'", sender, message.to)
    await recipient.send(forwarded)

  async def _handle_offer_accept(self, connection: PeerConnection, message: OfferAcceptMessage):
    sender = await self._require_identity(connection)
    if sender is None:
      return

    try:
      counterpart = self._counterpart(sender, message)
      recipient = self._resolve(counterpart)
    except RecipientUnknown as e:
      await connection.send(NotFoundMessage(peerId=e.peer_id).to_wire())
      return

    forwarded = message.model_dump(by_alias=True)
    forwarded["from"] = sender
    logger.info("'%s' accepted the call from '%s'", sender, counterpart)
    await recipient.send(forwarded)

  async def _handle_offer_decline(self, connection: PeerConnection, message: OfferDeclineMessage):
    sender = await self._require_identity(connection)
    if sender is None:
      return

    try:
      counterpart = self._counterpart(sender, message)
      recipient = self._resolve(counterpart)
    except RecipientUnknown as e:
      await self._send_error(connection, str(e))
      return

    logger.info("'%s' declined the call from '%s'", sender, counterpart)
    await recipient.send(ErrorMessage(from_=sender, message=f"'{sender}' declined the offer").to_wire())

  async def _handle_relay(self, connection: PeerConnection, message: InboundMessage):
    sender = await self._require_identity(connection)
    if sender is None:
      return

    try:
      recipient = self._resolve(message.to)
    except RecipientUnknown:
      # Best-effort negotiation step, nobody to tell
      logger.debug("Dropping %s from '%s': '%s' is not connected", message.type, sender, message.to)
      return

    field = RELAY_PAYLOAD_FIELDS[message.type]
    logger.debug("Relaying %s from '%s' to '%s'", message.type, sender, message.to)
    await recipient.send({"type": message.type, "from": sender, field: getattr(message, field)})

  async def _handle_leave(self, connection: PeerConnection, message: LeaveMessage):
    sender = self.connection_manager.identity_of(connection)
    if sender is None:
      return

    recipient = self.connection_manager.lookup(message.to)
    if recipient is None:
      return

    logger.info("'%s' left the call with '%s'", sender, message.to)
    await recipient.send(LeaveNoticeMessage(from_=sender).to_wire())

  async def _handle_pong(self, connection: PeerConnection, message: PongMessage):
    if message.nonce is not None and message.nonce != connection.ping_nonce:
      logger.warning("Pong from %s carries an unexpected nonce", connection.connection_id)
      return
    connection.liveness_confirmed = True
    logger.debug("Pong from %s", connection.connection_id)

  # Helpers

  @staticmethod
  def _counterpart(sender: str, message) -> str:
    """
    The other party named by an offer-accept/offer-decline: `to`, unless it
    names the sender itself, in which case `from`. A response addressed only
    to the sender has no counterpart.
    """
    if message.to != sender:
      return message.to
    if message.from_ == sender:
      raise RecipientUnknown(sender)
    return message.from_

  def _resolve(self, peer_id: str) -> PeerConnection:
    recipient = self.connection_manager.lookup(peer_id)
    if recipient is None:
      raise RecipientUnknown(peer_id)
    return recipient

  async def _require_identity(self, connection: PeerConnection) -> Optional[str]:
    sender = self.connection_manager.identity_of(connection)
    if sender is None:
      await self._send_error(connection, NOT_REGISTERED)
    return sender

  async def _send_error(self, connection: PeerConnection, detail: str):
    await connection.send(ErrorMessage(message=detail).to_wire())
