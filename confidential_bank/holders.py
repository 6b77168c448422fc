"""
TOKEN HOLDERS & IDS

A TokenHolder is a closed variant: either a user Address or a ModuleId.
Equality and hashing are variant-aware, so a user and a module with the same
raw bytes are different holders.
"""

import hashlib
from enum import IntEnum

ADDRESS_BYTES = 32
TOKEN_ID_PREFIX = "token_"


def _raw(value, what):
    if isinstance(value, str):
        try:
            value = bytes.fromhex(value)
        except ValueError:
            raise ValueError(f"{what} must be hex, got {value!r}") from None
    value = bytes(value)
    if len(value) != ADDRESS_BYTES:
        raise ValueError(f"{what} must be {ADDRESS_BYTES} bytes, got {len(value)}")
    return value


class _Identifier:
    __slots__ = ("raw",)
    label = None

    def __init__(self, raw):
        self.raw = _raw(raw, self.label)

    def __eq__(self, other):
        return type(other) is type(self) and other.raw == self.raw

    def __hash__(self):
        return hash((type(self).__name__, self.raw))

    def __str__(self):
        return self.raw.hex()

    def __repr__(self):
        return f"{type(self).__name__}({self.raw.hex()[:16]}...)"


class Address(_Identifier):
    __slots__ = ()
    label = "address"


class ModuleId(_Identifier):
    __slots__ = ()
    label = "module id"


class HolderKind(IntEnum):
    USER = 0
    MODULE = 1


class TokenHolder:
    __slots__ = ("kind", "raw")

    def __init__(self, kind: HolderKind, raw):
        self.kind = HolderKind(kind)
        self.raw = _raw(raw, "holder")

    @classmethod
    def user(cls, address) -> "TokenHolder":
        return cls(HolderKind.USER, as_address(address).raw)

    @classmethod
    def module(cls, module_id) -> "TokenHolder":
        if not isinstance(module_id, ModuleId):
            module_id = ModuleId(module_id)
        return cls(HolderKind.MODULE, module_id.raw)

    def as_bytes(self) -> bytes:
        """Raw holder bytes, without the variant tag (token id derivation)."""
        return self.raw

    def to_key(self) -> bytes:
        return bytes([self.kind]) + self.raw

    @classmethod
    def from_key(cls, key: bytes) -> "TokenHolder":
        return cls(key[0], key[1:])

    def to_json(self) -> str:
        return f"{self.kind.name.lower()}:{self.raw.hex()}"

    @classmethod
    def from_json(cls, text: str) -> "TokenHolder":
        kind, sep, raw = text.partition(":")
        if not sep or kind.upper() not in HolderKind.__members__:
            raise ValueError(f"Not a token holder: {text!r}")
        return cls(HolderKind[kind.upper()], raw)

    def __eq__(self, other):
        return isinstance(other, TokenHolder) and (self.kind, self.raw) == (other.kind, other.raw)

    def __hash__(self):
        return hash((self.kind, self.raw))

    def __str__(self):
        return self.raw.hex()

    def __repr__(self):
        return f"TokenHolder({self.to_json()[:24]}...)"


def as_address(value) -> Address:
    if isinstance(value, Address):
        return value
    return Address(value)


def as_token_holder(value) -> TokenHolder:
    """Convert a TokenHolder, Address, ModuleId or 'user:'/'module:' string."""
    if isinstance(value, TokenHolder):
        return value
    if isinstance(value, Address):
        return TokenHolder.user(value)
    if isinstance(value, ModuleId):
        return TokenHolder.module(value)
    if isinstance(value, str) and ":" in value:
        return TokenHolder.from_json(value)
    raise TypeError(f"Cannot hold tokens: {value!r}")


class TokenId:
    __slots__ = ("raw",)

    def __init__(self, raw):
        if isinstance(raw, str):
            raw = bytes.fromhex(raw[len(TOKEN_ID_PREFIX):] if raw.startswith(TOKEN_ID_PREFIX) else raw)
        raw = bytes(raw)
        if len(raw) != 32:
            raise ValueError(f"Token id must be 32 bytes, got {len(raw)}")
        self.raw = raw

    def __eq__(self, other):
        return isinstance(other, TokenId) and other.raw == self.raw

    def __hash__(self):
        return hash(self.raw)

    def __str__(self):
        return TOKEN_ID_PREFIX + self.raw.hex()

    def __repr__(self):
        return f"TokenId({self})"


def get_token_id(token_name: str, creator, salt: int) -> TokenId:
    """sha256(holder bytes || utf-8 name || salt as u64 little-endian)."""
    hasher = hashlib.sha256()
    hasher.update(as_token_holder(creator).as_bytes())
    hasher.update(token_name.encode("utf-8"))
    salt = int(salt)
    if not 0 <= salt < 2**64:
        raise ValueError(f"Salt {salt} is not an unsigned 64-bit integer")
    hasher.update(salt.to_bytes(8, "little"))
    return TokenId(hasher.digest())
