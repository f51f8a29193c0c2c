"""
Per-lane uniform random streams for the radiation kernels.

A stream is described to the kernels by three plain values so that the
same jitted code serves every backend:

    kind    HOST, LCG or SEQUENCE
    state   int64 array, one entry per particle of the launch (lane-private)
    values  float64 array (only SEQUENCE reads it)

draw_uniform(kind, state, values, lane) returns one sample in [0, 1) and
advances only that lane's state, so no particle ever reads another
particle's draws.
"""

import warnings
import numpy as np
import numba
from typing import Optional, Sequence


HOST = 0
LCG = 1
SEQUENCE = 2

# Numerical Recipes LCG, modulus 2**32
LCG_A = 1664525
LCG_C = 1013904223
LCG_M = 4294967296


@numba.njit(fastmath=True, cache=True, nogil=True)
def draw_uniform(kind: int, state: np.ndarray, values: np.ndarray, lane: int) -> float:
    """One uniform sample in [0, 1) for the given lane."""
    if kind == LCG:
        state[lane] = (LCG_A * state[lane] + LCG_C) % LCG_M
        return state[lane] / LCG_M
    if kind == SEQUENCE:
        u = values[state[lane] % values.shape[0]]
        state[lane] += 1
        return u
    return np.random.random()


def _splitmix64(x: np.ndarray) -> np.ndarray:
    """SplitMix64 finalizer on uint64 arrays (wrapping arithmetic)."""
    with np.errstate(over='ignore'):
        x = x + np.uint64(0x9E3779B97F4A7C15)
        x = (x ^ (x >> np.uint64(30))) * np.uint64(0xBF58476D1CE4E5B9)
        x = (x ^ (x >> np.uint64(27))) * np.uint64(0x94D049BB133111EB)
        return x ^ (x >> np.uint64(31))


class RandomStream:
    """Base class: a family of independent per-particle uniform streams."""

    kind = HOST
    name = 'base'

    def __init__(self, seed: Optional[int] = None):
        self.seed_sequence = np.random.SeedSequence(seed)
        self.values = np.zeros(1, dtype=np.float64)

    def launch_seed(self, call_index: int, chunk_index: int) -> int:
        """Deterministic 32-bit seed for one kernel launch."""
        child = np.random.SeedSequence(self.seed_sequence.entropy,
                                       spawn_key=(call_index, chunk_index))
        return int(child.generate_state(1, dtype=np.uint32)[0])

    def lane_states(self, istart: int, iend: int, launch_seed: int) -> np.ndarray:
        """Initial lane states for particles [istart, iend)."""
        return np.zeros(iend - istart, dtype=np.int64)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(entropy={self.seed_sequence.entropy})"


class HostStream(RandomStream):
    """
    Full-quality streams from numba's per-thread Mersenne Twister.

    Each kernel launch reseeds the generator of the thread running it with
    a seed derived from (seed, call, chunk). With the serial and threads
    backends this is reproducible for a fixed seed; numba.prange workers
    keep their own generator states and are not reproducible.
    """

    kind = HOST
    name = 'host'


class IndexLCGStream(RandomStream):
    """
    Accelerator-style streams derived from the particle index.

    Particle i starts from (i + 1) * (launch_seed + 1), scrambled with
    SplitMix64, then advances a 32-bit linear congruential generator
    (a = 1664525, c = 1013904223, m = 2**32). The launch seed depends on the
    call only, so draws are deterministic per index, seed and call whatever
    the chunk size or backend, and need no shared state.

    Known trade-off: a 32-bit LCG has a short period, correlated low bits
    and only 2**32 distinct values. It is statistically weaker than
    HostStream and is meant for massively parallel execution where a full
    generator per lane is too expensive. Prefer HostStream for production
    statistics.
    """

    kind = LCG
    name = 'lcg'

    def __init__(self, seed: Optional[int] = None, warn: bool = False):
        super().__init__(seed)
        if warn:
            warnings.warn("IndexLCGStream uses a 32-bit LCG per particle; its statistical "
                          "quality is lower than the host generator", UserWarning,
                          stacklevel=2)

    def launch_seed(self, call_index: int, chunk_index: int) -> int:
        return super().launch_seed(call_index, 0)

    def lane_states(self, istart: int, iend: int, launch_seed: int) -> np.ndarray:
        index = np.arange(istart + 1, iend + 1, dtype=np.uint64)
        with np.errstate(over='ignore'):
            x = index * np.uint64(launch_seed + 1)
        return (_splitmix64(x) & np.uint64(LCG_M - 1)).astype(np.int64)


class SequenceStream(RandomStream):
    """
    Every particle replays the same fixed sequence of uniforms.

    The sequence restarts at each call and wraps around when exhausted.
    Used for deterministic scenarios and tests.
    """

    kind = SEQUENCE
    name = 'sequence'

    def __init__(self, values: Sequence[float]):
        super().__init__(0)
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.size == 0:
            raise ValueError("SequenceStream needs at least one value")
        if np.any(values < 0.0) or np.any(values >= 1.0):
            raise ValueError("SequenceStream values must lie in [0, 1)")
        self.values = values


def create_stream(name: str, seed: Optional[int] = None) -> RandomStream:
    """Stream factory used by the configuration layer ('host' or 'lcg')."""
    name = name.lower()
    if name == 'host':
        return HostStream(seed)
    if name == 'lcg':
        return IndexLCGStream(seed, warn=True)
    raise ValueError(f"Unknown random stream '{name}'. Available: ['host', 'lcg']")
