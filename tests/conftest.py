"""Shared fixtures: an isolated registry and router per test, and fake sockets."""

import json
from typing import Any, Dict, List

import pytest
from starlette.websockets import WebSocketState

from core.settings import IceServer
from helpers.utils.peer_connection import PeerConnection
from helpers.utils.signaling_router import SignalingRouter
from helpers.utils.websocket_connection_manager import ConnectionManager


class FakeWebSocket:
  """Records what the relay sends; stands in for a Starlette WebSocket."""

  def __init__(self):
    self.client_state = WebSocketState.CONNECTED
    self.application_state = WebSocketState.CONNECTED
    self.sent: List[Dict[str, Any]] = []

  async def send_text(self, text: str):
    self.sent.append(json.loads(text))

  def drop(self):
    self.client_state = WebSocketState.DISCONNECTED


@pytest.fixture
def ice_servers() -> List[IceServer]:
  return [IceServer(urls="stun:stun.example.org:3478")]


@pytest.fixture
def connection_manager() -> ConnectionManager:
  return ConnectionManager()


@pytest.fixture
def signaling_router(connection_manager, ice_servers) -> SignalingRouter:
  return SignalingRouter(connection_manager, ice_servers)


@pytest.fixture
def make_connection():
  """Factory for peer connections backed by FakeWebSocket."""

  def _make(connection_id: str = None) -> PeerConnection:
    return PeerConnection(FakeWebSocket(), connection_id)

  return _make
