from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from typing import Optional
from uuid import uuid4
import json
import logging

logger = logging.getLogger(__name__)

class PeerConnection:
  """
  One live signaling session. Wraps the transport WebSocket; the peer id it
  is bound to lives in the ConnectionManager, not here.
  """

  def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
    self.websocket = websocket
    self.connection_id = connection_id or str(uuid4())
    self.ping_nonce: Optional[str] = None
    self.liveness_confirmed = False

  def __repr__(self):
    return f"<PeerConnection {self.connection_id}>"

  @property
  def is_open(self) -> bool:
    return (
      self.websocket.client_state == WebSocketState.CONNECTED
      and self.websocket.application_state == WebSocketState.CONNECTED
    )

  async def send(self, message: dict) -> bool:
    """
    Best-effort delivery. Returns False when the message was dropped because
    the socket is gone; the caller never retries.
    """
    if not self.is_open:
      logger.warning("Dropping %s for closed connection %s", message.get("type"), self.connection_id)
      return False

    try:
      await self.websocket.send_text(json.dumps(message))
    except (WebSocketDisconnect, RuntimeError, OSError) as e:
      # Closed between the state check and the write
      logger.warning("Failed to deliver %s to %s: %s", message.get("type"), self.connection_id, e)
      return False
    return True
