"""
zkvoid Poseidon Permutation

Poseidon over the BN254 scalar field, parameterized exactly like circomlib:
x^5 S-box, 8 full rounds, width-dependent partial rounds, round constants
and Cauchy MDS matrix drawn from the Grain LFSR.

Parameter generation walks the LFSR bit by bit and takes a noticeable
fraction of a second per width, so parameters are built once per width and
shared process-wide.
"""

from __future__ import annotations
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from zkvoid.constants import (
    FIELD_MODULUS,
    FIELD_BITS,
    POSEIDON_ALPHA,
    POSEIDON_FULL_ROUNDS,
    POSEIDON_PARTIAL_ROUNDS,
    POSEIDON_MAX_INPUTS,
)

logger = logging.getLogger(__name__)

# Grain LFSR parameter encoding
_GRAIN_FIELD_PRIME = 1
_GRAIN_SBOX_POWER = 0
_GRAIN_STATE_BITS = 80
_GRAIN_WARMUP = 160


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width."""
    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: Tuple[int, ...]
    mds: Tuple[Tuple[int, ...], ...]


class GrainLFSR:
    """
    Grain LFSR used to derive Poseidon constants.

    Seeded with the field type, S-box, field size, width and round counts.
    Output bits are filtered: a bit is emitted only when the preceding
    LFSR bit is 1.
    """

    def __init__(self, field_bits: int, t: int, full_rounds: int, partial_rounds: int):
        seed: List[int] = []
        for value, width in (
            (_GRAIN_FIELD_PRIME, 2),
            (_GRAIN_SBOX_POWER, 4),
            (field_bits, 12),
            (t, 12),
            (full_rounds, 10),
            (partial_rounds, 10),
        ):
            seed.extend(int(b) for b in format(value, f"0{width}b"))
        seed.extend([1] * (_GRAIN_STATE_BITS - len(seed)))

        self._state = deque(seed, maxlen=_GRAIN_STATE_BITS)
        for _ in range(_GRAIN_WARMUP):
            self._step()

    def _step(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.append(bit)
        return bit

    def next_bit(self) -> int:
        while True:
            keep = self._step()
            bit = self._step()
            if keep:
                return bit

    def next_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, num_bits: int, modulus: int) -> int:
        """Sample by rejection until the value is below modulus."""
        value = self.next_int(num_bits)
        while value >= modulus:
            value = self.next_int(num_bits)
        return value


def generate_params(t: int) -> PoseidonParams:
    """
    Generate Poseidon parameters for state width t.

    Args:
        t: State width (number of inputs + 1)

    Returns:
        PoseidonParams for that width
    """
    if t < 2 or t - 2 >= len(POSEIDON_PARTIAL_ROUNDS):
        raise ValueError(f"Unsupported Poseidon width: {t}")

    full_rounds = POSEIDON_FULL_ROUNDS
    partial_rounds = POSEIDON_PARTIAL_ROUNDS[t - 2]
    p = FIELD_MODULUS

    lfsr = GrainLFSR(FIELD_BITS, t, full_rounds, partial_rounds)

    constants = tuple(
        lfsr.next_field_element(FIELD_BITS, p)
        for _ in range((full_rounds + partial_rounds) * t)
    )

    # Cauchy matrix M[i][j] = 1 / (x_i + y_j)
    samples = [lfsr.next_int(FIELD_BITS) % p for _ in range(2 * t)]
    xs, ys = samples[:t], samples[t:]
    mds = tuple(
        tuple(pow((x + y) % p, -1, p) for y in ys)
        for x in xs
    )

    logger.debug(f"Generated Poseidon parameters for t={t} (R_F={full_rounds}, R_P={partial_rounds})")

    return PoseidonParams(
        t=t,
        full_rounds=full_rounds,
        partial_rounds=partial_rounds,
        round_constants=constants,
        mds=mds,
    )


# Process-wide parameter cache
_params_cache: Dict[int, PoseidonParams] = {}
_params_lock = threading.Lock()


def get_poseidon_params(t: int) -> PoseidonParams:
    """Get (building once) the parameters for width t."""
    params = _params_cache.get(t)
    if params is not None:
        return params

    with _params_lock:
        params = _params_cache.get(t)
        if params is None:
            params = generate_params(t)
            _params_cache[t] = params
        return params


def permute(inputs: Sequence[int], params: PoseidonParams) -> int:
    """
    Run the Poseidon permutation over [0, *inputs] and return state[0].
    """
    p = FIELD_MODULUS
    t = params.t
    constants = params.round_constants
    mds = params.mds
    half_full = params.full_rounds // 2
    total_rounds = params.full_rounds + params.partial_rounds

    state = [0, *inputs]

    for r in range(total_rounds):
        offset = r * t
        state = [(s + constants[offset + i]) % p for i, s in enumerate(state)]

        if r < half_full or r >= half_full + params.partial_rounds:
            state = [pow(s, POSEIDON_ALPHA, p) for s in state]
        else:
            state[0] = pow(state[0], POSEIDON_ALPHA, p)

        state = [
            sum(m * s for m, s in zip(row, state)) % p
            for row in mds
        ]

    return state[0]


def poseidon(inputs: Sequence[int]) -> int:
    """
    Poseidon hash of 1..16 field elements.

    Raises:
        ValueError: If arity is unsupported or an input is out of field
    """
    if not 1 <= len(inputs) <= POSEIDON_MAX_INPUTS:
        raise ValueError(f"Poseidon takes 1..{POSEIDON_MAX_INPUTS} inputs, got {len(inputs)}")
    for value in inputs:
        if not 0 <= value < FIELD_MODULUS:
            raise ValueError(f"Poseidon input out of field: {value}")

    return permute(inputs, get_poseidon_params(len(inputs) + 1))
