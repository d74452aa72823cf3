from core.exceptions import IdentityCollision
from helpers.utils.peer_connection import PeerConnection
from typing import Dict, List, Optional
import logging
import threading

logger = logging.getLogger(__name__)

class ConnectionManager:
  """
  Registry of peer ids and the live connections that claimed them.

  The two dictionaries are kept as exact inverses of each other, so a peer id
  maps to one connection and a connection holds at most one peer id. Every
  method takes the lock and none of them await, which keeps each operation
  atomic for event loop tasks and threads alike.
  """

  def __init__(self):
    self._lock = threading.Lock()
    # {peer_id: connection}
    self._connections_by_peer: Dict[str, PeerConnection] = {}
    # {connection: peer_id}
    self._peers_by_connection: Dict[PeerConnection, str] = {}

  def register(self, peer_id: str, connection: PeerConnection) -> None:
    """
    Bind peer_id to connection.

    Raises IdentityCollision when another open connection holds peer_id. A
    connection that already holds a different peer id is rebound and its old
    peer id is released. Registering the peer id a connection already holds
    is a no-op.
    """
    with self._lock:
      holder = self._connections_by_peer.get(peer_id)
      if holder is connection:
        return

      if holder is not None:
        if holder.is_open:
          raise IdentityCollision(peer_id)
        # Stale entry whose close was never reported
        logger.warning("Evicting stale binding of '%s' held by %s", peer_id, holder.connection_id)
        self._remove(holder)

      previous_peer_id = self._remove(connection)
      if previous_peer_id is not None:
        logger.info("Connection %s released '%s'", connection.connection_id, previous_peer_id)

      self._connections_by_peer[peer_id] = connection
      self._peers_by_connection[connection] = peer_id

  def lookup(self, peer_id: str) -> Optional[PeerConnection]:
    with self._lock:
      connection = self._connections_by_peer.get(peer_id)
    if connection is None or not connection.is_open:
      return None
    return connection

  def identity_of(self, connection: PeerConnection) -> Optional[str]:
    with self._lock:
      return self._peers_by_connection.get(connection)

  def unregister(self, connection: PeerConnection) -> Optional[str]:
    """
    Remove whatever binding connection holds. Safe to call any number of
    times; returns the released peer id, or None if there was nothing bound.
    """
    with self._lock:
      return self._remove(connection)

  def list_identities(self) -> List[str]:
    with self._lock:
      return sorted(self._connections_by_peer)

  def __len__(self):
    with self._lock:
      return len(self._connections_by_peer)

  def _remove(self, connection: PeerConnection) -> Optional[str]:
    # Caller holds the lock
    peer_id = self._peers_by_connection.pop(connection, None)
    if peer_id is not None:
      del self._connections_by_peer[peer_id]
    return peer_id
