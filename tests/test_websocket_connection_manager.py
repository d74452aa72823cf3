"""Unit tests for the peer id registry."""

import threading

import pytest

from core.exceptions import IdentityCollision


class TestRegister:
  def test_register_binds_peer_id(self, connection_manager, make_connection):
    alice = make_connection()

    connection_manager.register("alice", alice)

    assert connection_manager.lookup("alice") is alice
    assert connection_manager.identity_of(alice) == "alice"

  def test_collision_with_open_connection(self, connection_manager, make_connection):
    first, second = make_connection(), make_connection()
    connection_manager.register("alice", first)

    with pytest.raises(IdentityCollision) as exc_info:
      connection_manager.register("alice", second)

    assert exc_info.value.peer_id == "alice"
    assert connection_manager.lookup("alice") is first
    assert connection_manager.identity_of(second) is None

  def test_collision_message_does_not_describe_holder(self, connection_manager, make_connection):
    first, second = make_connection("conn-first"), make_connection("conn-second")
    connection_manager.register("alice", first)

    with pytest.raises(IdentityCollision) as exc_info:
      connection_manager.register("alice", second)

    assert "conn-first" not in str(exc_info.value)

  def test_same_peer_id_twice_is_noop(self, connection_manager, make_connection):
    alice = make_connection()
    connection_manager.register("alice", alice)
    connection_manager.register("alice", alice)

    assert connection_manager.list_identities() == ["alice"]

  def test_rebind_releases_previous_peer_id(self, connection_manager, make_connection):
    conn = make_connection()
    connection_manager.register("alice", conn)

    connection_manager.register("carol", conn)

    assert connection_manager.lookup("alice") is None
    assert connection_manager.lookup("carol") is conn
    assert connection_manager.list_identities() == ["carol"]

  def test_stale_binding_is_evicted(self, connection_manager, make_connection):
    stale, fresh = make_connection(), make_connection()
    connection_manager.register("alice", stale)
    stale.websocket.drop()

    connection_manager.register("alice", fresh)

    assert connection_manager.lookup("alice") is fresh
    assert connection_manager.identity_of(stale) is None

  def test_concurrent_registration_has_single_winner(self, connection_manager, make_connection):
    connections = [make_connection() for _ in range(16)]
    barrier = threading.Barrier(len(connections))
    winners, losers = [], []

    def claim(conn):
      barrier.wait()
      try:
        connection_manager.register("alice", conn)
      except IdentityCollision:
        losers.append(conn)
      else:
        winners.append(conn)

    threads = [threading.Thread(target=claim, args=(conn,)) for conn in connections]
    for thread in threads:
      thread.start()
    for thread in threads:
      thread.join()

    assert len(winners) == 1
    assert len(losers) == len(connections) - 1
    assert connection_manager.lookup("alice") is winners[0]


class TestLookup:
  def test_unknown_peer_id(self, connection_manager):
    assert connection_manager.lookup("ghost") is None

  def test_closed_connection_is_not_returned(self, connection_manager, make_connection):
    alice = make_connection()
    connection_manager.register("alice", alice)
    alice.websocket.drop()

    assert connection_manager.lookup("alice") is None


class TestUnregister:
  def test_unregister_removes_only_its_binding(self, connection_manager, make_connection):
    alice, bob = make_connection(), make_connection()
    connection_manager.register("alice", alice)
    connection_manager.register("bob", bob)

    assert connection_manager.unregister(alice) == "alice"

    assert connection_manager.lookup("alice") is None
    assert connection_manager.lookup("bob") is bob
    assert connection_manager.list_identities() == ["bob"]

  def test_unregister_is_idempotent(self, connection_manager, make_connection):
    alice, bob = make_connection(), make_connection()
    connection_manager.register("alice", alice)
    connection_manager.register("bob", bob)
    connection_manager.unregister(alice)

    assert connection_manager.unregister(alice) is None
    assert connection_manager.list_identities() == ["bob"]

  def test_unregister_unbound_connection(self, connection_manager, make_connection):
    assert connection_manager.unregister(make_connection()) is None
    assert len(connection_manager) == 0

  def test_peer_id_is_free_after_unregister(self, connection_manager, make_connection):
    first, second = make_connection(), make_connection()
    connection_manager.register("alice", first)
    connection_manager.unregister(first)

    connection_manager.register("alice", second)

    assert connection_manager.lookup("alice") is second


def test_list_identities_is_sorted(connection_manager, make_connection):
  for peer_id in ("carol", "alice", "bob"):
    connection_manager.register(peer_id, make_connection())

  assert connection_manager.list_identities() == ["alice", "bob", "carol"]
