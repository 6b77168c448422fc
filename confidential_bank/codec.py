"""
CIPHERTEXT CODEC

Opaque byte formats for compressed ciphertexts and key material.

    header  = magic "XCB" | format version u8 | kind u8 | parameter set id u8
    seeded  = header | seed[32] | count u32 | count * body u64      (LE)
    packed  = header | count u32 | count * word u32                 (LE)
    bits    = header | count u32 | ceil(count / 8) packed bytes     (LSB first)

Pure and stateless: bytes in, tuples or uint64 / uint32 arrays out. Any
malformed input raises CodecError; nothing is ever padded, truncated or guessed.
"""

import struct
from enum import IntEnum

import numpy as np

from confidential_bank.errors import CodecError
from confidential_bank.params import PARAMETER_SET_ID, SEED_BYTES

MAGIC = b"XCB"
FORMAT_VERSION = 1

HEADER = struct.Struct("<3sBBB")
COUNT = struct.Struct("<I")


class Kind(IntEnum):
    UINT64 = 0x01
    BOOL = 0x02
    PACKED_UINT64 = 0x03
    PACKED_BOOL = 0x04
    PUBLIC_KEY = 0x10
    SERVER_KEY = 0x11
    CLIENT_KEY = 0x12


# -----------------------------------------------------------------------------
# Header
# -----------------------------------------------------------------------------

def encode_header(kind: Kind) -> bytes:
    return HEADER.pack(MAGIC, FORMAT_VERSION, int(kind), PARAMETER_SET_ID)


def decode_header(data: bytes, kind: Kind) -> int:
    """Validate the header and return the payload offset."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise CodecError(f"Expected bytes, got {type(data).__name__}")
    if len(data) < HEADER.size:
        raise CodecError("Truncated header", {"length": len(data)})
    magic, version, found_kind, param_id = HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise CodecError("Bad magic", {"magic": bytes(magic).hex()})
    if version != FORMAT_VERSION:
        raise CodecError("Unsupported format version", {"version": version})
    if found_kind != kind:
        raise CodecError(
            f"Expected {Kind(kind).name} payload",
            {"kind": found_kind}
        )
    if param_id != PARAMETER_SET_ID:
        raise CodecError(
            "Parameter set mismatch",
            {"expected": PARAMETER_SET_ID, "found": param_id}
        )
    return HEADER.size


def peek_kind(data: bytes) -> Kind:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise CodecError(f"Expected bytes, got {type(data).__name__}")
    if len(data) < HEADER.size:
        raise CodecError("Truncated header", {"length": len(data)})
    kind = HEADER.unpack_from(data, 0)[2]
    try:
        return Kind(kind)
    except ValueError:
        raise CodecError("Unknown payload kind", {"kind": kind}) from None


# -----------------------------------------------------------------------------
# Seeded payloads (compressed ciphertexts, compressed public key)
# -----------------------------------------------------------------------------

def encode_seeded(kind: Kind, seed: bytes, bodies) -> bytes:
    if len(seed) != SEED_BYTES:
        raise CodecError("Seed must be 32 bytes", {"length": len(seed)})
    if isinstance(bodies, np.ndarray):
        if bodies.dtype != np.uint64:
            raise CodecError("Bodies must be uint64", {"dtype": str(bodies.dtype)})
        count, packed = bodies.size, bodies.astype("<u8").tobytes()
    else:
        bodies = tuple(bodies)
        try:
            packed = struct.pack(f"<{len(bodies)}Q", *bodies)
        except struct.error as e:
            raise CodecError(f"Body out of range: {e}") from e
        count = len(bodies)
    return encode_header(kind) + bytes(seed) + COUNT.pack(count) + packed


def decode_seeded(data: bytes, kind: Kind, expected_count: int = None):
    """Return (seed, bodies) of a seeded payload, bodies as a uint64 array."""
    offset = decode_header(data, kind)
    end_of_prefix = offset + SEED_BYTES + COUNT.size
    if len(data) < end_of_prefix:
        raise CodecError("Truncated seeded payload", {"length": len(data)})

    seed = bytes(data[offset:offset + SEED_BYTES])
    (count,) = COUNT.unpack_from(data, offset + SEED_BYTES)
    if expected_count is not None and count != expected_count:
        raise CodecError(
            "Unexpected body count",
            {"expected": expected_count, "found": count}
        )
    if len(data) != end_of_prefix + 8 * count:
        raise CodecError(
            "Payload length does not match body count",
            {"length": len(data), "count": count}
        )
    bodies = np.frombuffer(bytes(data), dtype="<u8", count=count, offset=end_of_prefix)
    return seed, bodies.astype(np.uint64)


# -----------------------------------------------------------------------------
# Packed payloads (modulus-switched ciphertexts)
# -----------------------------------------------------------------------------

def encode_packed(kind: Kind, words: np.ndarray) -> bytes:
    words = np.asarray(words)
    if words.dtype != np.uint32:
        raise CodecError("Packed words must be uint32", {"dtype": str(words.dtype)})
    return encode_header(kind) + COUNT.pack(words.size) + words.astype("<u4").tobytes()


def decode_packed(data: bytes, kind: Kind, expected_count: int = None) -> np.ndarray:
    offset = decode_header(data, kind)
    if len(data) < offset + COUNT.size:
        raise CodecError("Truncated packed payload", {"length": len(data)})
    (count,) = COUNT.unpack_from(data, offset)
    if expected_count is not None and count != expected_count:
        raise CodecError(
            "Unexpected word count",
            {"expected": expected_count, "found": count}
        )
    if len(data) != offset + COUNT.size + 4 * count:
        raise CodecError(
            "Payload length does not match word count",
            {"length": len(data), "count": count}
        )
    words = np.frombuffer(bytes(data), dtype="<u4", count=count, offset=offset + COUNT.size)
    return words.astype(np.uint32)


# -----------------------------------------------------------------------------
# Bit payloads (secret keys)
# -----------------------------------------------------------------------------

def encode_bits(kind: Kind, bits) -> bytes:
    bits = tuple(bits)
    packed = bytearray((len(bits) + 7) // 8)
    for i, bit in enumerate(bits):
        if bit not in (0, 1):
            raise CodecError("Secret bits must be 0 or 1", {"index": i})
        packed[i // 8] |= bit << (i % 8)
    return encode_header(kind) + COUNT.pack(len(bits)) + bytes(packed)


def decode_bits(data: bytes, kind: Kind, expected_count: int = None):
    offset = decode_header(data, kind)
    if len(data) < offset + COUNT.size:
        raise CodecError("Truncated bit payload", {"length": len(data)})
    (count,) = COUNT.unpack_from(data, offset)
    if expected_count is not None and count != expected_count:
        raise CodecError(
            "Unexpected bit count",
            {"expected": expected_count, "found": count}
        )
    packed = data[offset + COUNT.size:]
    if len(packed) != (count + 7) // 8:
        raise CodecError(
            "Payload length does not match bit count",
            {"length": len(data), "count": count}
        )
    return tuple((packed[i // 8] >> (i % 8)) & 1 for i in range(count))
