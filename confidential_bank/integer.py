"""
RADIX INTEGERS

FheUint64 / FheBool and the call-scoped EvaluationContext that evaluates
wrapping add, wrapping subtract, unsigned greater-than and oblivious select on
them. Every operation goes through programmable bootstraps, so no result ever
depends on a plaintext branch. Bootstraps that do not depend on each other are
issued together through backend.bootstrap_many, which lets the batched backend
evaluate them in one pass.
"""

import numpy as np

from confidential_bank import lwe
from confidential_bank.codec import Kind
from confidential_bank.errors import ContextReleasedError
from confidential_bank.params import BLOCK_SPACE, MESSAGE_MODULUS, NUM_BLOCKS


def univariate_lut(f):
    return tuple(f(v) for v in range(BLOCK_SPACE))


def bivariate_lut(f):
    # packed input is hi * MESSAGE_MODULUS + lo
    return tuple(f(v // MESSAGE_MODULUS, v % MESSAGE_MODULUS) for v in range(BLOCK_SPACE))


MESSAGE_LUT = univariate_lut(lambda v: v % MESSAGE_MODULUS)
CARRY_LUT = univariate_lut(lambda v: v // MESSAGE_MODULUS)
# 0: less, 1: equal, 2: greater
SIGN_LUT = bivariate_lut(lambda a, b: (a > b) - (a < b) + 1)
FOLD_LUT = bivariate_lut(lambda hi, lo: lo if hi == 1 else hi)
GREATER_FOLD_LUT = bivariate_lut(lambda hi, lo: int((lo if hi == 1 else hi) == 2))

# select input is cond * SELECT_SHIFT + (t - f + 3); output t - f or 0, possibly negative
SELECT_SHIFT = 2 * MESSAGE_MODULUS
SELECT_LUT = univariate_lut(
    lambda v: (v % SELECT_SHIFT) - (MESSAGE_MODULUS - 1) if v // SELECT_SHIFT == 1 else 0
)


class FheUint64:
    """Unsigned 64-bit radix ciphertext, NUM_BLOCKS little-endian blocks."""

    __slots__ = ("blocks",)

    def __init__(self, blocks):
        self.blocks = tuple(blocks)
        if len(self.blocks) != NUM_BLOCKS:
            raise ValueError(f"FheUint64 needs {NUM_BLOCKS} blocks, got {len(self.blocks)}")


class FheBool:
    __slots__ = ("block",)

    def __init__(self, block):
        self.block = block


class EvaluationContext:
    """
    Server-key evaluation scope for exactly one ledger call.

    Obtained from keys.install_evaluation_context(); any use after release
    raises ContextReleasedError.
    """

    def __init__(self, backend):
        self._backend = backend
        self._released = False

    @property
    def backend_name(self) -> str:
        return self._backend.name

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        if not self._released:
            self._released = True
            self._backend.release()

    def _require_open(self):
        if self._released:
            raise ContextReleasedError(self._backend.name)

    @property
    def backend(self):
        self._require_open()
        return self._backend

    # ---- construction & transport -----------------------------------------

    def trivial(self, value: int) -> FheUint64:
        backend = self.backend
        return FheUint64(backend.trivial(v) for v in lwe.to_block_values(value))

    def zero(self) -> FheUint64:
        return self.trivial(0)

    def trivial_bool(self, value: bool) -> FheBool:
        return FheBool(self.backend.trivial(int(bool(value))))

    def decompress(self, data: bytes) -> FheUint64:
        """Seeded (client side) or packed (evaluated) u64 ciphertext."""
        self._require_open()
        _, blocks = lwe.load_blocks(data)
        return FheUint64(blocks)

    def decompress_bool(self, data: bytes) -> FheBool:
        self._require_open()
        _, blocks = lwe.load_blocks(data, boolean=True)
        return FheBool(blocks[0])

    def compress(self, value: FheUint64) -> bytes:
        self._require_open()
        return lwe.dump_blocks(Kind.PACKED_UINT64, np.stack(value.blocks))

    def compress_bool(self, value: FheBool) -> bytes:
        self._require_open()
        return lwe.dump_blocks(Kind.PACKED_BOOL, value.block[None])

    def import_blocks(self, blocks) -> FheUint64:
        """Adopt raw blocks, e.g. a public-key encryption."""
        self._require_open()
        return FheUint64(np.array(blocks, dtype=np.uint64))

    def export_blocks(self, value: FheUint64) -> np.ndarray:
        self._require_open()
        return np.stack(value.blocks)

    # ---- arithmetic ---------------------------------------------------------

    def _pack(self, hi, lo, shift=MESSAGE_MODULUS):
        backend = self.backend
        return backend.add(backend.scalar_mul(hi, shift), lo)

    def _propagate(self, blocks):
        backend = self.backend
        out = []
        carry = None
        last = len(blocks) - 1
        for i, block in enumerate(blocks):
            if carry is not None:
                block = backend.add(block, carry)
            # the top carry is dropped: arithmetic wraps mod 2^64
            if i < last:
                message, carry = backend.bootstrap_many([block, block], [MESSAGE_LUT, CARRY_LUT])
            else:
                (message,) = backend.bootstrap_many([block], [MESSAGE_LUT])
            out.append(message)
        return FheUint64(out)

    def add(self, x: FheUint64, y: FheUint64) -> FheUint64:
        backend = self.backend
        return self._propagate([backend.add(a, b) for a, b in zip(x.blocks, y.blocks)])

    def sub(self, x: FheUint64, y: FheUint64) -> FheUint64:
        """x + ~y + 1, wrapping."""
        backend = self.backend
        complement = backend.trivial(MESSAGE_MODULUS - 1)
        blocks = [
            backend.add(a, backend.sub(complement, b))
            for a, b in zip(x.blocks, y.blocks)
        ]
        blocks[0] = backend.add(blocks[0], backend.trivial(1))
        return self._propagate(blocks)

    def gt(self, x: FheUint64, y: FheUint64) -> FheBool:
        """Block signs, then a pairwise fold from the most significant side."""
        backend = self.backend
        level = backend.bootstrap_many(
            [self._pack(a, b) for a, b in zip(x.blocks, y.blocks)],
            [SIGN_LUT] * NUM_BLOCKS,
        )
        while len(level) > 1:
            lut = FOLD_LUT if len(level) > 2 else GREATER_FOLD_LUT
            packed = [self._pack(level[k + 1], level[k]) for k in range(0, len(level), 2)]
            level = backend.bootstrap_many(packed, [lut] * len(packed))
        return FheBool(level[0])

    def select(self, condition: FheBool, if_true: FheUint64, if_false: FheUint64) -> FheUint64:
        """if_false + (if_true - if_false when condition), block by block."""
        backend = self.backend
        cond = backend.scalar_mul(condition.block, SELECT_SHIFT)
        offset = backend.trivial(MESSAGE_MODULUS - 1)
        packed = [
            backend.add(cond, backend.add(backend.sub(t, f), offset))
            for t, f in zip(if_true.blocks, if_false.blocks)
        ]
        deltas = backend.bootstrap_many(packed, [SELECT_LUT] * NUM_BLOCKS)
        return FheUint64(backend.add(f, d) for f, d in zip(if_false.blocks, deltas))
