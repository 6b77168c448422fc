"""
RADIX LWE PRIMITIVES

Block ciphertexts at rest are LWE samples mod 2^64 under the coefficients S of
the binary GLWE key:

    body = <mask, S> + DELTA * value + noise        (mod 2^64)

An unsigned 64-bit amount is a radix ciphertext of NUM_BLOCKS blocks, each
holding MESSAGE_BITS of the value (little-endian). A block is a uint64 array of
BIG_LWE_DIMENSION mask coefficients followed by the body.

Two compressed forms exist:

  seeded  fresh client or public-key side encryptions: masks are re-expanded
          from a 32-byte seed with SHAKE-256, only bodies are stored
  packed  evaluated ciphertexts: every coefficient modulus-switched down to
          PACKED_BITS, which needs no key at all

Key objects:

  ClientKey            GLWE key S and small LWE key s (private, never in
                       ledger state)
  CompressedPublicKey  seeded encryptions of zero under S
  CompressedServerKey  bootstrapping key (GGSW encryptions of s under S) and
                       key-switching key (encryptions of S under s), both
                       seeded. It holds no secret and cannot decrypt.
"""

import hashlib
import secrets
from dataclasses import dataclass
from functools import cached_property
from typing import Sequence, Tuple

import numpy as np

from confidential_bank import codec, poly
from confidential_bank.codec import Kind
from confidential_bank.errors import CodecError
from confidential_bank.params import (
    BIG_LWE_DIMENSION,
    BLOCK_SPACE,
    DELTA,
    GLWE_NOISE_BOUND,
    KS_BASE_LOG,
    KS_LEVEL,
    LWE_DIMENSION,
    LWE_NOISE_BOUND,
    MASK64,
    MESSAGE_BITS,
    MESSAGE_MODULUS,
    NUM_BLOCKS,
    PACKED_BITS,
    PBS_BASE_LOG,
    PBS_LEVEL,
    POLYNOMIAL_SIZE,
    PUBLIC_KEY_SIZE,
    SEED_BYTES,
    UINT64_MAX,
)

DOMAIN = b"XCB:v2|"

BLOCK_SIZE = BIG_LWE_DIMENSION + 1
BOOTSTRAP_ROWS = 2 * PBS_LEVEL
BOOTSTRAP_BODIES = LWE_DIMENSION * BOOTSTRAP_ROWS * POLYNOMIAL_SIZE
KEYSWITCH_ROWS = BIG_LWE_DIMENSION * KS_LEVEL
SERVER_KEY_BODIES = BOOTSTRAP_BODIES + KEYSWITCH_ROWS

PACK_SHIFT = np.uint64(64 - PACKED_BITS)
PACK_ROUNDING = np.uint64(1 << (63 - PACKED_BITS))

# -----------------------------------------------------------------------------
# Encoding & randomness
# -----------------------------------------------------------------------------

def encode(value: int) -> int:
    return (value * DELTA) & MASK64


def encode_all(values) -> np.ndarray:
    return np.array([encode(v) for v in values], dtype=np.uint64)


def decode(phase: int) -> int:
    # rounds away the noise, drops the padding bit
    return ((int(phase) + DELTA // 2) // DELTA) % BLOCK_SPACE


def expand(seed: bytes, tag: bytes, count: int) -> np.ndarray:
    """`count` uniform uint64 words from SHAKE-256 over (tag, seed)."""
    xof = hashlib.shake_256(DOMAIN + tag + b"|" + seed)
    return np.frombuffer(xof.digest(8 * count), dtype="<u8").astype(np.uint64)


def noise(shape, bound: int) -> np.ndarray:
    """Uniform noise in [-bound, bound], wrapped into uint64."""
    count = int(np.prod(shape))
    raw = np.frombuffer(secrets.token_bytes(8 * count), dtype="<u8").astype(np.uint64)
    signed = (raw % np.uint64(2 * bound + 1)).astype(np.int64) - bound
    return signed.astype(np.uint64).reshape(shape)


def random_bits(shape) -> np.ndarray:
    count = int(np.prod(shape))
    return (np.frombuffer(secrets.token_bytes(count), dtype=np.uint8) & 1).astype(bool).reshape(shape)


def to_block_values(value: int):
    if not 0 <= value <= UINT64_MAX:
        raise ValueError(f"Amount {value} is not an unsigned 64-bit integer")
    return [(value >> (MESSAGE_BITS * i)) % MESSAGE_MODULUS for i in range(NUM_BLOCKS)]


def from_block_values(values: Sequence[int]) -> int:
    return sum((v % MESSAGE_MODULUS) << (MESSAGE_BITS * i) for i, v in enumerate(values))


# -----------------------------------------------------------------------------
# Ciphertext payloads
# -----------------------------------------------------------------------------

def block_count(kind: Kind) -> int:
    return 1 if kind in (Kind.BOOL, Kind.PACKED_BOOL) else NUM_BLOCKS


def ciphertext_masks(seed: bytes, count: int) -> np.ndarray:
    return expand(seed, b"ct", count * BIG_LWE_DIMENSION).reshape(count, BIG_LWE_DIMENSION)


def pack(blocks: np.ndarray) -> np.ndarray:
    """Modulus-switch every coefficient to PACKED_BITS, rounding to nearest."""
    return ((blocks + PACK_ROUNDING) >> PACK_SHIFT).astype(np.uint32)


def unpack(words: np.ndarray) -> np.ndarray:
    return words.astype(np.uint64) << PACK_SHIFT


def dump_blocks(kind: Kind, blocks: np.ndarray) -> bytes:
    return codec.encode_packed(kind, pack(blocks).reshape(-1))


def load_blocks(data: bytes, boolean: bool = False) -> Tuple[Kind, np.ndarray]:
    """
    Blocks of a seeded or packed ciphertext, shape (count, BLOCK_SIZE).

    `boolean` selects which family of kinds is accepted.
    """
    kind = codec.peek_kind(data)
    seeded, packed = (Kind.BOOL, Kind.PACKED_BOOL) if boolean else (Kind.UINT64, Kind.PACKED_UINT64)
    count = block_count(kind)
    if kind == seeded:
        seed, bodies = codec.decode_seeded(data, kind, expected_count=count)
        return kind, np.concatenate([ciphertext_masks(seed, count), bodies[:, None]], axis=1)
    if kind == packed:
        words = codec.decode_packed(data, kind, expected_count=count * BLOCK_SIZE)
        return kind, unpack(words).reshape(count, BLOCK_SIZE)
    raise CodecError(f"Expected {seeded.name} or {packed.name} payload", {"kind": int(kind)})


# -----------------------------------------------------------------------------
# Client (private) key
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ClientKey:
    glwe_bits: Tuple[int, ...]
    lwe_bits: Tuple[int, ...]

    @classmethod
    def generate(cls) -> "ClientKey":
        return cls(
            tuple(secrets.randbits(1) for _ in range(BIG_LWE_DIMENSION)),
            tuple(secrets.randbits(1) for _ in range(LWE_DIMENSION)),
        )

    @cached_property
    def glwe_key(self) -> np.ndarray:
        """S as a uint64 polynomial."""
        return np.array(self.glwe_bits, dtype=np.uint64)

    @cached_property
    def lwe_key(self) -> np.ndarray:
        return np.array(self.lwe_bits, dtype=bool)

    def phases(self, blocks: np.ndarray) -> np.ndarray:
        support = self.glwe_key.astype(bool)
        return blocks[:, -1] - blocks[:, :BIG_LWE_DIMENSION][:, support].sum(axis=1, dtype=np.uint64)

    def encrypt_compressed(self, amount: int) -> bytes:
        """Seeded symmetric encryption of a u64, ready for ledger state."""
        seed = secrets.token_bytes(SEED_BYTES)
        masks = ciphertext_masks(seed, NUM_BLOCKS)
        bodies = (
            masks[:, self.glwe_key.astype(bool)].sum(axis=1, dtype=np.uint64)
            + encode_all(to_block_values(amount))
            + noise(NUM_BLOCKS, GLWE_NOISE_BOUND)
        )
        return codec.encode_seeded(Kind.UINT64, seed, bodies)

    def decrypt_blocks(self, blocks) -> int:
        """Decrypt the raw blocks of a radix ciphertext."""
        return from_block_values([decode(p) for p in self.phases(np.asarray(blocks))])

    def decrypt(self, data: bytes) -> int:
        kind = codec.peek_kind(data)
        boolean = kind in (Kind.BOOL, Kind.PACKED_BOOL)
        _, blocks = load_blocks(data, boolean=boolean)
        values = [decode(p) for p in self.phases(blocks)]
        if boolean:
            return values[0] % MESSAGE_MODULUS
        return from_block_values(values)

    def serialize(self) -> bytes:
        return codec.encode_bits(Kind.CLIENT_KEY, self.glwe_bits + self.lwe_bits)

    @classmethod
    def deserialize(cls, data: bytes) -> "ClientKey":
        bits = codec.decode_bits(
            data, Kind.CLIENT_KEY, expected_count=BIG_LWE_DIMENSION + LWE_DIMENSION
        )
        return cls(bits[:BIG_LWE_DIMENSION], bits[BIG_LWE_DIMENSION:])


# -----------------------------------------------------------------------------
# Public key
# -----------------------------------------------------------------------------

def public_key_masks(seed: bytes) -> np.ndarray:
    return expand(seed, b"pk", PUBLIC_KEY_SIZE * BIG_LWE_DIMENSION).reshape(
        PUBLIC_KEY_SIZE, BIG_LWE_DIMENSION
    )


@dataclass(frozen=True)
class CompressedPublicKey:
    seed: bytes
    bodies: Tuple[int, ...]

    @classmethod
    def new(cls, client_key: ClientKey) -> "CompressedPublicKey":
        seed = secrets.token_bytes(SEED_BYTES)
        masks = public_key_masks(seed)
        bodies = (
            masks[:, client_key.glwe_key.astype(bool)].sum(axis=1, dtype=np.uint64)
            + noise(PUBLIC_KEY_SIZE, GLWE_NOISE_BOUND)
        )
        return cls(seed, tuple(bodies.tolist()))

    def decompress(self) -> "PublicKey":
        return PublicKey(public_key_masks(self.seed), np.array(self.bodies, dtype=np.uint64))

    def serialize(self) -> bytes:
        return codec.encode_seeded(Kind.PUBLIC_KEY, self.seed, self.bodies)

    @classmethod
    def deserialize(cls, data: bytes) -> "CompressedPublicKey":
        seed, bodies = codec.decode_seeded(data, Kind.PUBLIC_KEY, expected_count=PUBLIC_KEY_SIZE)
        return cls(seed, tuple(bodies.tolist()))


class PublicKey:
    """Decompressed public key: PUBLIC_KEY_SIZE encryptions of zero."""

    def __init__(self, masks: np.ndarray, bodies: np.ndarray):
        self.masks = masks
        self.bodies = bodies

    def encrypt(self, amount: int) -> np.ndarray:
        """Encrypt a u64 into raw blocks: random subset sums of the zero encryptions."""
        selectors = random_bits((NUM_BLOCKS, len(self.bodies))).astype(np.uint64)
        masks = selectors @ self.masks
        bodies = (
            selectors @ self.bodies
            + encode_all(to_block_values(amount))
            + noise(NUM_BLOCKS, GLWE_NOISE_BOUND)
        )
        return np.concatenate([masks, bodies[:, None]], axis=1)


# -----------------------------------------------------------------------------
# Server (evaluation) key
# -----------------------------------------------------------------------------

def bootstrap_masks(seed: bytes) -> np.ndarray:
    return expand(seed, b"bsk", BOOTSTRAP_BODIES).reshape(
        LWE_DIMENSION, BOOTSTRAP_ROWS, POLYNOMIAL_SIZE
    )


def keyswitch_masks(seed: bytes) -> np.ndarray:
    return expand(seed, b"ksk", KEYSWITCH_ROWS * LWE_DIMENSION).reshape(
        KEYSWITCH_ROWS, LWE_DIMENSION
    )


@dataclass(frozen=True)
class CompressedServerKey:
    """
    Seeded evaluation key.

    Bootstrapping key: for every bit s_i of the small key, a GGSW ciphertext
    under S made of 2 * PBS_LEVEL GLWE rows. Row k of the first half has phase
    -s_i * g_k * S, row k of the second half s_i * g_k, g_k = 2^(64 - (k+1) * 7).

    Key-switching key: row (j, k) is an LWE encryption under s of S_j * g'_k,
    g'_k = 2^(64 - (k+1) * 4).

    `bodies` holds the bootstrapping bodies (row-major) then the key-switching
    bodies; every mask is re-expanded from `seed`.
    """

    seed: bytes
    bodies: Tuple[int, ...]

    @classmethod
    def new(cls, client_key: ClientKey) -> "CompressedServerKey":
        seed = secrets.token_bytes(SEED_BYTES)
        glwe_key = client_key.glwe_key

        masks = bootstrap_masks(seed)
        bootstrap = poly.multiply(glwe_key, masks) + noise(masks.shape, GLWE_NOISE_BOUND)
        scaled = (
            client_key.lwe_key.astype(np.uint64)[:, None]
            * np.array(poly.gadget(PBS_BASE_LOG, PBS_LEVEL), dtype=np.uint64)
        )
        bootstrap[:, :PBS_LEVEL] -= scaled[:, :, None] * glwe_key
        bootstrap[:, PBS_LEVEL:, 0] += scaled

        keyswitch_plain = (
            glwe_key[:, None] * np.array(poly.gadget(KS_BASE_LOG, KS_LEVEL), dtype=np.uint64)
        ).reshape(-1)
        keyswitch = (
            keyswitch_masks(seed)[:, client_key.lwe_key].sum(axis=1, dtype=np.uint64)
            + keyswitch_plain
            + noise(KEYSWITCH_ROWS, LWE_NOISE_BOUND)
        )
        return cls(seed, tuple(np.concatenate([bootstrap.reshape(-1), keyswitch]).tolist()))

    def decompress(self) -> "ServerKey":
        bodies = np.array(self.bodies, dtype=np.uint64)
        bootstrap_rows = np.stack([
            bootstrap_masks(self.seed),
            bodies[:BOOTSTRAP_BODIES].reshape(LWE_DIMENSION, BOOTSTRAP_ROWS, POLYNOMIAL_SIZE),
        ], axis=2)
        keyswitch = np.concatenate(
            [keyswitch_masks(self.seed), bodies[BOOTSTRAP_BODIES:, None]], axis=1
        )
        return ServerKey(poly.limb_spectrum(bootstrap_rows), keyswitch)

    def serialize(self) -> bytes:
        return codec.encode_seeded(Kind.SERVER_KEY, self.seed, self.bodies)

    @classmethod
    def deserialize(cls, data: bytes) -> "CompressedServerKey":
        seed, bodies = codec.decode_seeded(data, Kind.SERVER_KEY, expected_count=SERVER_KEY_BODIES)
        return cls(seed, tuple(bodies.tolist()))


class ServerKey:
    """
    Evaluation-ready key material.

    bootstrap_spectrum  (LWE_DIMENSION, 2 * PBS_LEVEL, 2, LIMBS, N/2) complex
                        spectra of the GGSW rows, mask then body column
    keyswitch           (KEYSWITCH_ROWS, LWE_DIMENSION + 1) uint64 samples
    """

    def __init__(self, bootstrap_spectrum: np.ndarray, keyswitch: np.ndarray):
        self.bootstrap_spectrum = bootstrap_spectrum
        self.keyswitch = keyswitch
