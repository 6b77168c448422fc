"""
PARAMETER SET

Fixed, versioned constants of the radix TFHE scheme. Every node of a ledger
deployment must run the same set; stored ciphertexts and keys carry the set id
in their header and are rejected under any other set.

Shape follows a "message 2 / carry 2, KS-PBS" set: ciphertexts at rest are
LWE samples under the GLWE key (dimension POLYNOMIAL_SIZE), bootstrapping
key-switches them down to the small LWE key before blind rotation.

The dimensions are reduced test-size values: the set is functionally complete
but far below 128-bit security.
"""

# -----------------------------------------------------------------------------
# Identity
# -----------------------------------------------------------------------------

PARAMETER_SET = "XTFHE-M2C2-KS-PBS-TOY-V2"
PARAMETER_SET_ID = 2

# -----------------------------------------------------------------------------
# Torus
# -----------------------------------------------------------------------------

MODULUS_BITS = 64
MODULUS = 2**MODULUS_BITS
MASK64 = MODULUS - 1

# -----------------------------------------------------------------------------
# Keys
# -----------------------------------------------------------------------------

# GLWE key: one binary polynomial; its coefficients are the LWE key of
# ciphertexts at rest
GLWE_DIMENSION = 1
POLYNOMIAL_SIZE = 512
BIG_LWE_DIMENSION = GLWE_DIMENSION * POLYNOMIAL_SIZE

# small LWE key, only ever seen inside a bootstrap
LWE_DIMENSION = 64

PBS_BASE_LOG = 7
PBS_LEVEL = 3
KS_BASE_LOG = 4
KS_LEVEL = 4

# uniform noise in [-bound, bound], absolute (out of 2^64)
GLWE_NOISE_BOUND = 2**24
LWE_NOISE_BOUND = 2**24

PUBLIC_KEY_SIZE = 1024

# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------

MESSAGE_MODULUS = 4
CARRY_MODULUS = 4
BLOCK_SPACE = MESSAGE_MODULUS * CARRY_MODULUS  # message + carry, 4 bits
# one padding bit on top of message and carry
DELTA = MODULUS // (BLOCK_SPACE * 2)

# compressed (modulus-switched) words
PACKED_BITS = 32

# -----------------------------------------------------------------------------
# Radix integers
# -----------------------------------------------------------------------------

INTEGER_BITS = 64
MESSAGE_BITS = 2
NUM_BLOCKS = INTEGER_BITS // MESSAGE_BITS
UINT64_MAX = 2**INTEGER_BITS - 1

SEED_BYTES = 32
