"""
STATE ACCESSOR

The ledger never owns storage: the host chain hands every call a state object
and the ledger only relies on the protocols below.

  StateAccessor   get / set of raw bytes under a key
  CallState       a call's working set; also collects emitted events and is
                  committed or discarded as a whole by the host
  VersionedState  committed state that can serve read-only archival views

StateMap / StateValue are the typed wrappers the ledger builds by hand from an
explicit namespace prefix.
"""

import json
from typing import Any, Callable, Optional, Protocol


class StateAccessor(Protocol):
    def get(self, key: bytes) -> Optional[bytes]:
        ...

    def set(self, key: bytes, value: bytes) -> None:
        ...


class CallState(StateAccessor, Protocol):
    def emit_event(self, event) -> None:
        ...


class VersionedState(Protocol):
    def get(self, key: bytes) -> Optional[bytes]:
        ...

    def archival(self, version: int) -> StateAccessor:
        """Read-only view of the committed state at `version`; KeyError if absent."""
        ...


# -----------------------------------------------------------------------------
# Typed wrappers
# -----------------------------------------------------------------------------

class BytesCodec:
    @staticmethod
    def encode(value: bytes) -> bytes:
        return bytes(value)

    @staticmethod
    def decode(data: bytes) -> bytes:
        return data


class JsonCodec:
    """Canonical JSON: sorted keys, no whitespace."""

    @staticmethod
    def encode(value: Any) -> bytes:
        return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def decode(data: bytes) -> Any:
        return json.loads(data)


class IntCodec:
    @staticmethod
    def encode(value: int) -> bytes:
        return int(value).to_bytes(8, "little")

    @staticmethod
    def decode(data: bytes) -> int:
        return int.from_bytes(data, "little")


class StateValue:
    def __init__(self, prefix: bytes, codec=BytesCodec):
        self.prefix = prefix
        self.codec = codec

    def get(self, state: StateAccessor):
        data = state.get(self.prefix)
        return None if data is None else self.codec.decode(data)

    def set(self, value, state: StateAccessor):
        state.set(self.prefix, self.codec.encode(value))


class StateMap:
    def __init__(self, prefix: bytes, key_encoder: Callable[[Any], bytes], codec=BytesCodec):
        self.prefix = prefix
        self.key_encoder = key_encoder
        self.codec = codec

    def _key(self, key) -> bytes:
        return self.prefix + self.key_encoder(key)

    def get(self, key, state: StateAccessor):
        data = state.get(self._key(key))
        return None if data is None else self.codec.decode(data)

    def set(self, key, value, state: StateAccessor):
        state.set(self._key(key), self.codec.encode(value))
