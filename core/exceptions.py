class SignalingError(Exception):
  """Base class for errors surfaced to a single peer connection."""

class IdentityCollision(SignalingError):
  def __init__(self, peer_id: str):
    super().__init__(f"peer id '{peer_id}' is already taken")
    self.peer_id = peer_id

class RecipientUnknown(SignalingError):
  def __init__(self, peer_id: str):
    super().__init__(f"peer '{peer_id}' not found")
    self.peer_id = peer_id

class MalformedMessage(SignalingError):
  pass

class UnknownMessageType(SignalingError):
  def __init__(self, message_type):
    super().__init__(f"unknown command: {message_type!r}")
    self.message_type = message_type
