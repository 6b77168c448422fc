"""
NEGACYCLIC POLYNOMIALS

Arithmetic in Z_{2^64}[X] / (X^N + 1), N = POLYNOMIAL_SIZE, on uint64 arrays
whose last axis holds the coefficients.

Products go through a folded complex FFT of size N/2: the coefficients are
paired as a_j + i*a_{j+N/2} and twisted by exp(i*pi*j/N), which evaluates the
polynomial at the odd powers of the 2N-th root of unity. The wide operand is
split into 16-bit limbs and the narrow operand is a small signed digit, so every
limb product stays far inside float64 precision and rounds back exactly.
Results are integers, independent of how many polynomials are batched.
"""

import numpy as np

from confidential_bank.params import POLYNOMIAL_SIZE

HALF = POLYNOMIAL_SIZE // 2
TWIST = np.exp(1j * np.pi * np.arange(HALF) / POLYNOMIAL_SIZE)
UNTWIST = np.conj(TWIST)

LIMB_BITS = 16
LIMBS = 64 // LIMB_BITS
LIMB_SHIFTS = (np.arange(LIMBS, dtype=np.uint64) * np.uint64(LIMB_BITS))[:, None]
LIMB_MASK = np.uint64(2**LIMB_BITS - 1)

ZERO = np.uint64(0)


def forward(values) -> np.ndarray:
    """Spectrum of real (integer-valued) polynomials, shape (..., N) -> (..., N/2)."""
    values = np.asarray(values, dtype=np.float64)
    return np.fft.fft((values[..., :HALF] + 1j * values[..., HALF:]) * TWIST)


def backward(spectrum) -> np.ndarray:
    folded = np.fft.ifft(spectrum) * UNTWIST
    return np.concatenate([folded.real, folded.imag], axis=-1)


def split_limbs(polys) -> np.ndarray:
    """uint64 (..., N) -> float64 (..., LIMBS, N), least significant limb first."""
    return ((polys[..., None, :] >> LIMB_SHIFTS) & LIMB_MASK).astype(np.float64)


def join_limbs(values) -> np.ndarray:
    """Round limb products back to integers and recombine them mod 2^64."""
    exact = np.rint(values).astype(np.int64).astype(np.uint64)
    return (exact << LIMB_SHIFTS).sum(axis=-2, dtype=np.uint64)


def limb_spectrum(polys) -> np.ndarray:
    return forward(split_limbs(polys))


def multiply(small, wide) -> np.ndarray:
    """small * wide, with `small` holding coefficients of a few bits."""
    product = forward(small)[..., None, :] * limb_spectrum(wide)
    return join_limbs(backward(product))


def decompose(values, base_log: int, level: int) -> np.ndarray:
    """
    Balanced gadget digits of the top base_log * level bits of each value.

    Returns int64 digits in [-B/2, B/2) on a new last axis, most significant
    level first, so that sum(d_k * 2^(64 - (k+1) * base_log)) is the rounded
    value mod 2^64.
    """
    total = base_log * level
    rounding = np.uint64(1 << (63 - total))
    rounded = ((values + rounding) >> np.uint64(64 - total)).astype(np.int64)
    base = 1 << base_log
    half = base >> 1
    # adding B/2 at every level turns plain digits into balanced ones
    offset = sum(half << (base_log * k) for k in range(level))
    shifts = np.array([base_log * k for k in reversed(range(level))], dtype=np.int64)
    return (((rounded + offset)[..., None] >> shifts) & (base - 1)) - half


def gadget(base_log: int, level: int):
    return [2**(64 - (k + 1) * base_log) for k in range(level)]


def rotate(polys, powers) -> np.ndarray:
    """
    Multiply each polynomial by X^power, power in [0, 2N).

    `powers` has the shape of polys without its last axis (or broadcasts to it).
    """
    n = POLYNOMIAL_SIZE
    powers = np.asarray(powers, dtype=np.int64)
    shifted = np.arange(n) - powers[..., None]
    index = np.broadcast_to(shifted % n, polys.shape)
    negate = np.broadcast_to((shifted < 0) & (shifted >= -n), polys.shape)
    gathered = np.take_along_axis(polys, index, axis=-1)
    return np.where(negate, ZERO - gathered, gathered)
