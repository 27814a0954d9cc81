"""Poseidon hash over the BN254 scalar field.

Poseidon is the field-native hash used for every commitment value: field
hashes of email and passphrase, the leaf, and every internal tree node.
Working natively in the SNARK field means commitments can later be
re-proven inside a circuit without bit decomposition.

Parameters follow the reference construction:
- x^5 S-box, 8 full rounds, partial rounds from the standard table for
  the state width t (t = number of inputs + 1, capacity element first).
- Round constants and the Cauchy MDS matrix are drawn from the Grain
  LFSR seeded with (field, sbox, n, t, R_F, R_P).

Generating constants is the expensive step, so it happens once per
process: ``init_engine()`` is the single initialisation point and
``get_engine()`` hands out the shared, read-only engine.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence


# BN254 (alt_bn128) scalar field modulus.
BN254_SCALAR_FIELD = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

FIELD_BITS = 254
SBOX_ALPHA = 5
FULL_ROUNDS = 8

# Partial rounds indexed by t - 2 (t = 2 .. 17).
PARTIAL_ROUNDS = (
    56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68,
)

# Widths built at engine initialisation: one input (field hash) and two
# inputs (leaf and tree nodes).
DEFAULT_WIDTHS = (2, 3)


# ---------------------------------------------------------------------------
# Parameter generation
# ---------------------------------------------------------------------------

class _GrainLFSR:
    """80-bit Grain self-shrinking generator used for parameter derivation."""

    _SIZE = 80

    def __init__(self, t: int, full_rounds: int, partial_rounds: int) -> None:
        seed_bits = (
            _bits(1, 2)                  # prime field
            + _bits(0, 4)                # x^alpha S-box
            + _bits(FIELD_BITS, 12)
            + _bits(t, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        # Bit k of the register is seed_bits[k]; bit 0 is the oldest.
        self._state = 0
        for k, bit in enumerate(seed_bits):
            self._state |= bit << k
        for _ in range(160):
            self._clock()

    def _clock(self) -> int:
        s = self._state
        bit = ((s >> 62) ^ (s >> 51) ^ (s >> 38) ^ (s >> 23) ^ (s >> 13) ^ s) & 1
        self._state = (s >> 1) | (bit << (self._SIZE - 1))
        return bit

    def next_bit(self) -> int:
        bit = self._clock()
        while bit == 0:
            self._clock()
            bit = self._clock()
        return self._clock()

    def next_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.next_bit()
        return value

    def next_field_element(self, modulus: int) -> int:
        """Rejection-sample an element below *modulus*."""
        value = self.next_int(FIELD_BITS)
        while value >= modulus:
            value = self.next_int(FIELD_BITS)
        return value


def _bits(value: int, width: int) -> list[int]:
    return [int(b) for b in format(value, f"0{width}b")]


@dataclass(frozen=True)
class PoseidonParams:
    """Round constants and MDS matrix for one state width."""
    t: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple[int, ...]
    mds: tuple[tuple[int, ...], ...]

    @staticmethod
    def generate(t: int, modulus: int = BN254_SCALAR_FIELD) -> PoseidonParams:
        if not 2 <= t <= len(PARTIAL_ROUNDS) + 1:
            raise ValueError(f"Unsupported Poseidon width t={t}")
        partial_rounds = PARTIAL_ROUNDS[t - 2]
        grain = _GrainLFSR(t, FULL_ROUNDS, partial_rounds)

        constants = tuple(
            grain.next_field_element(modulus)
            for _ in range((FULL_ROUNDS + partial_rounds) * t)
        )
        mds = _cauchy_mds(grain, t, modulus)

        return PoseidonParams(
            t=t,
            full_rounds=FULL_ROUNDS,
            partial_rounds=partial_rounds,
            round_constants=constants,
            mds=mds,
        )


def _cauchy_mds(grain: _GrainLFSR, t: int, modulus: int) -> tuple[tuple[int, ...], ...]:
    """M[i][j] = 1 / (x_i + y_j) with 2t distinct sampled points."""
    while True:
        points = [grain.next_int(FIELD_BITS) % modulus for _ in range(2 * t)]
        while len(set(points)) != len(points):
            points = [grain.next_int(FIELD_BITS) % modulus for _ in range(2 * t)]
        xs, ys = points[:t], points[t:]
        if any((x + y) % modulus == 0 for x in xs for y in ys):
            continue
        return tuple(
            tuple(pow(x + y, -1, modulus) for y in ys)
            for x in xs
        )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class PoseidonEngine:
    """Immutable Poseidon hasher holding pre-generated parameters.

    Usage:
        engine = get_engine()
        h = engine.hash([a, b])
    """

    def __init__(
        self,
        params: Iterable[PoseidonParams],
        modulus: int = BN254_SCALAR_FIELD,
    ) -> None:
        self._modulus = modulus
        self._params = {p.t: p for p in params}

    @classmethod
    def build(
        cls,
        widths: Sequence[int] = DEFAULT_WIDTHS,
        modulus: int = BN254_SCALAR_FIELD,
    ) -> PoseidonEngine:
        return cls((PoseidonParams.generate(t, modulus) for t in widths), modulus)

    @property
    def modulus(self) -> int:
        return self._modulus

    @property
    def widths(self) -> tuple[int, ...]:
        return tuple(sorted(self._params))

    def hash(self, inputs: Sequence[int]) -> int:
        """Hash 1..t-1 field elements to a single field element.

        Inputs are converted to field elements (reduced modulo p), as a
        field library does when it receives an integer.
        """
        t = len(inputs) + 1
        params = self._params.get(t)
        if params is None:
            raise ValueError(
                f"Engine not initialised for {len(inputs)} inputs "
                f"(widths available: {self.widths})"
            )
        state = [0] + [int(x) % self._modulus for x in inputs]
        return self._permute(state, params)[0]

    def _permute(self, state: list[int], params: PoseidonParams) -> list[int]:
        p = self._modulus
        t = params.t
        constants = params.round_constants
        mds = params.mds
        half_full = params.full_rounds // 2
        total_rounds = params.full_rounds + params.partial_rounds

        for r in range(total_rounds):
            offset = r * t
            state = [(x + constants[offset + i]) % p for i, x in enumerate(state)]
            if r < half_full or r >= half_full + params.partial_rounds:
                state = [pow(x, SBOX_ALPHA, p) for x in state]
            else:
                state[0] = pow(state[0], SBOX_ALPHA, p)
            state = [
                sum(m * x for m, x in zip(row, state)) % p
                for row in mds
            ]
        return state


# ---------------------------------------------------------------------------
# Process-scoped engine
# ---------------------------------------------------------------------------

_engine: Optional[PoseidonEngine] = None
_engine_lock = threading.Lock()


def init_engine(widths: Sequence[int] = DEFAULT_WIDTHS) -> PoseidonEngine:
    """Build the process-wide engine once; later calls return the same instance."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = PoseidonEngine.build(widths)
        return _engine


def get_engine() -> PoseidonEngine:
    """Return the shared engine, initialising it on first use."""
    engine = _engine
    if engine is None:
        return init_engine()
    return engine
