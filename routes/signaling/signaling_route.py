from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from helpers.utils.peer_connection import PeerConnection
from helpers.utils.signaling_router import SignalingRouter
from helpers.utils.websocket_connection_manager import ConnectionManager
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

def get_signaling_router(websocket: WebSocket) -> SignalingRouter:
  return websocket.app.state.signaling_router

def get_connection_manager(request: Request) -> ConnectionManager:
  return request.app.state.connection_manager

@router.websocket("/ws")
async def websocket_signaling_endpoint(
  websocket: WebSocket,
  signaling_router: SignalingRouter = Depends(get_signaling_router),
):
  await websocket.accept()
  connection = PeerConnection(websocket)
  logger.info("New connection %s from %s", connection.connection_id, websocket.client)

  try:
    await signaling_router.connect(connection)
    while True:
      frame = await websocket.receive()
      if frame["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))
      # Text and binary frames both carry JSON
      data = frame.get("text")
      if data is None:
        data = frame.get("bytes") or b""
      await signaling_router.handle_text(connection, data)
  except WebSocketDisconnect:
    pass
  except Exception as e:
    logger.exception("Unexpected error on %s", connection.connection_id)
    if connection.is_open:
      await websocket.close(code=1011, reason=str(e)[:120])
  finally:
    # Runs exactly once per connection, registered or not
    signaling_router.disconnect(connection)

@router.get("/peers", status_code=200)
async def list_peers(connection_manager: ConnectionManager = Depends(get_connection_manager)):
  peers = connection_manager.list_identities()
  return {"peers": peers, "count": len(peers)}
