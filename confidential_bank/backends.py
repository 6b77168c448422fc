"""
EVALUATION BACKENDS

Blocks are uint64 arrays (BIG_LWE_DIMENSION mask coefficients, then the body);
linear operations wrap mod 2^64. Programmable bootstrapping runs the kernel
below:

    keyswitch      dimension N under S  ->  dimension n under s
    mod switch     coefficients to Z_2N
    blind rotate   test polynomial rotated by -phase, one CMux per bit of s
    extract        constant coefficient, back to dimension N under S

Two strategies drive it:

  CpuBackend  bootstraps one block at a time
  GpuBackend  host-side numpy stand-in for a GPU backend: bootstraps a whole
              batch of blocks in one vectorised pass. No device code is
              involved.

Every step is exact integer arithmetic (the FFT products are rounded back from
error far below 1/2), so both strategies produce bit-identical blocks.
"""

import logging
from abc import ABC, abstractmethod
from functools import lru_cache

import numpy as np

from confidential_bank import lwe, poly
from confidential_bank.errors import UnknownBackend
from confidential_bank.params import (
    BIG_LWE_DIMENSION,
    BLOCK_SPACE,
    KS_BASE_LOG,
    KS_LEVEL,
    LWE_DIMENSION,
    PBS_BASE_LOG,
    PBS_LEVEL,
    POLYNOMIAL_SIZE,
)

logger = logging.getLogger(__name__)

ROTATIONS = 2 * POLYNOMIAL_SIZE
SWITCH_SHIFT = np.uint64(64 - (ROTATIONS.bit_length() - 1))
SWITCH_ROUNDING = np.uint64(1 << (63 - (ROTATIONS.bit_length() - 1)))

# -----------------------------------------------------------------------------
# Bootstrapping kernel
# -----------------------------------------------------------------------------

@lru_cache(maxsize=None)
def test_polynomial(lut) -> np.ndarray:
    """
    Accumulator whose constant coefficient after X^-phase reads lut[value].

    Each value owns a box of 2N / (2 * BLOCK_SPACE) rotations centred on its
    encoding; the half box below zero wraps negacyclically, hence -lut[0].
    """
    box = ROTATIONS // (2 * BLOCK_SPACE)
    half = box // 2
    coefficients = [lwe.encode(lut[(j + half) // box]) for j in range(POLYNOMIAL_SIZE - half)]
    coefficients += [lwe.encode(-lut[0])] * half
    result = np.array(coefficients, dtype=np.uint64)
    result.flags.writeable = False
    return result


def keyswitch(key: lwe.ServerKey, blocks: np.ndarray) -> np.ndarray:
    digits = poly.decompose(blocks[:, :BIG_LWE_DIMENSION], KS_BASE_LOG, KS_LEVEL)
    switched = poly.ZERO - digits.reshape(len(blocks), -1).astype(np.uint64) @ key.keyswitch
    switched[:, -1] += blocks[:, -1]
    return switched


def modulus_switch(samples: np.ndarray) -> np.ndarray:
    return ((samples + SWITCH_ROUNDING) >> SWITCH_SHIFT).astype(np.int64)


def external_product(ggsw: np.ndarray, glwe: np.ndarray) -> np.ndarray:
    digits = poly.decompose(glwe, PBS_BASE_LOG, PBS_LEVEL)
    # rows ordered (column, level) like the GGSW rows
    digits = np.moveaxis(digits, -1, 2).reshape(len(glwe), 2 * PBS_LEVEL, POLYNOMIAL_SIZE)
    product = np.einsum("brh,rclh->bclh", poly.forward(digits), ggsw)
    return poly.join_limbs(poly.backward(product))


def blind_rotate(key: lwe.ServerKey, switched: np.ndarray, test_polys: np.ndarray) -> np.ndarray:
    accumulator = np.zeros((len(switched), 2, POLYNOMIAL_SIZE), dtype=np.uint64)
    accumulator[:, 1] = poly.rotate(test_polys, (ROTATIONS - switched[:, -1]) % ROTATIONS)
    for i in range(LWE_DIMENSION):
        rotated = poly.rotate(accumulator, switched[:, i, None])
        accumulator = accumulator + external_product(key.bootstrap_spectrum[i], rotated - accumulator)
    return accumulator


def sample_extract(accumulator: np.ndarray) -> np.ndarray:
    mask = accumulator[:, 0]
    return np.concatenate(
        [mask[:, :1], poly.ZERO - mask[:, :0:-1], accumulator[:, 1, :1]], axis=1
    )


def programmable_bootstrap(key: lwe.ServerKey, blocks, luts) -> np.ndarray:
    """Fresh blocks encrypting lut[value] for each (block, lut) pair."""
    test_polys = np.stack([test_polynomial(tuple(lut)) for lut in luts])
    switched = modulus_switch(keyswitch(key, np.stack(blocks)))
    return sample_extract(blind_rotate(key, switched, test_polys))


# -----------------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------------

class EvaluationBackend(ABC):
    name = None

    def __init__(self, server_key: lwe.ServerKey):
        self._key = server_key

    def trivial(self, value: int) -> np.ndarray:
        block = np.zeros(lwe.BLOCK_SIZE, dtype=np.uint64)
        block[-1] = lwe.encode(value)
        return block

    @staticmethod
    def block_bytes(block) -> bytes:
        return block.astype("<u8").tobytes()

    def add(self, x, y):
        return x + y

    def sub(self, x, y):
        return x - y

    def scalar_mul(self, x, k: int):
        return x * np.uint64(k)

    @abstractmethod
    def bootstrap_many(self, blocks, luts):
        """Programmable bootstrap of every block through its lut."""

    def bootstrap(self, block, lut):
        return self.bootstrap_many([block], [lut])[0]

    def release(self):
        logger.debug("Releasing %s evaluation backend", self.name)


class CpuBackend(EvaluationBackend):
    name = "cpu"

    def bootstrap_many(self, blocks, luts):
        return [programmable_bootstrap(self._key, [block], [lut])[0] for block, lut in zip(blocks, luts)]


class GpuBackend(EvaluationBackend):
    """
    Host-side numpy stand-in for a GPU backend.

    Bootstraps all pending blocks in one vectorised pass instead of one by one;
    it runs on the CPU like everything else.
    """

    name = "gpu"

    def bootstrap_many(self, blocks, luts):
        if not blocks:
            return []
        return list(programmable_bootstrap(self._key, blocks, luts))


BACKENDS = {
    CpuBackend.name: CpuBackend,
    GpuBackend.name: GpuBackend,
}


def get_backend(name: str):
    try:
        return BACKENDS[name]
    except KeyError:
        raise UnknownBackend(name) from None
