"""
zkvoid Constants

All protocol constants defined here for single source of truth.
"""

from typing import Final, List, Tuple

# ==============================================================================
# FIELD
# ==============================================================================

# BN254 scalar field (the field the withdrawal circuit works over)
FIELD_MODULUS: Final[int] = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_BYTES: Final[int] = 32                    # Canonical big-endian width
FIELD_BITS: Final[int] = 254

# ==============================================================================
# HASHER
# ==============================================================================

HASHER_POSEIDON: Final[str] = "poseidon"
HASHER_KECCAK: Final[str] = "keccak"
DEFAULT_HASHER: Final[str] = HASHER_POSEIDON

# Poseidon (x^5 S-box, 128-bit security), circomlib parameterization
POSEIDON_ALPHA: Final[int] = 5
POSEIDON_FULL_ROUNDS: Final[int] = 8
# Partial rounds indexed by state width t - 2 (t = 2 .. 17)
POSEIDON_PARTIAL_ROUNDS: Final[List[int]] = [
    56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68,
]
POSEIDON_MAX_INPUTS: Final[int] = len(POSEIDON_PARTIAL_ROUNDS)

# Pinned vectors checked when the Poseidon parameters are first built
POSEIDON_TEST_VECTORS: Final[List[Tuple[Tuple[int, ...], int]]] = [
    ((1, 2), 0x115CC0F5E7D690413DF64C6B9662E9CF2A3617F2743245519E19607A4417189A),
    ((0, 0), 0x2098F5FB9E239EAB3CEAC3F27B81E481DC3124D55FFED523A839EE8446B64864),
]

# ==============================================================================
# MERKLE ACCUMULATOR
# ==============================================================================

MERKLE_TREE_HEIGHT: Final[int] = 20             # 2^20 deposits
MERKLE_MAX_HEIGHT: Final[int] = 32
ZERO_LEAF: Final[int] = 0                       # zero_values[0]

# ==============================================================================
# ROOT HISTORY
# ==============================================================================

ROOT_HISTORY_SIZE: Final[int] = 30              # Roots accepted for withdrawal

# ==============================================================================
# NOTES
# ==============================================================================

NOTE_PREFIX: Final[str] = "zkvoid"
NOTE_KIND: Final[str] = "note"
NOTE_VERSION: Final[str] = "v1"
NOTE_ASSET: Final[str] = "eth"
NOTE_DENOMINATION: Final[str] = "0.1"
NOTE_DELIMITER: Final[str] = "-"
NOTE_PAYLOAD_DELIMITER: Final[str] = ":"
NOTE_SEGMENT_COUNT: Final[int] = 7
# 31 bytes keeps nullifier and secret strictly below the field modulus
NOTE_FIELD_BYTES: Final[int] = 31
NOTE_FIELD_HEX_CHARS: Final[int] = NOTE_FIELD_BYTES * 2

# ==============================================================================
# WITHDRAWAL
# ==============================================================================

# Pool denomination in base units (0.1 ETH)
DENOMINATION_WEI: Final[int] = 10 ** 17

# Public signal order of the withdrawal circuit
PUBLIC_SIGNALS: Final[Tuple[str, ...]] = (
    "root",
    "nullifierHash",
    "recipient",
    "relayer",
    "fee",
    "refund",
)
PUBLIC_SIGNAL_COUNT: Final[int] = len(PUBLIC_SIGNALS)

# ==============================================================================
# NETWORKS
# ==============================================================================

CHAIN_ID_MAINNET: Final[int] = 1
CHAIN_ID_SEPOLIA: Final[int] = 11155111

# ==============================================================================
# PROVER
# ==============================================================================

SNARKJS_BINARY: Final[str] = "snarkjs"
PROVER_TIMEOUT_SEC: Final[int] = 300
VERIFIER_TIMEOUT_SEC: Final[int] = 60
