"""
Electromagnetic field samples interpolated at particle positions.

The field interpolator is an external collaborator; the radiation core only
reads one (E, B) triple per particle. The buffer may start at a different
particle index than the particle container (ipart_ref): particle i reads
row i - ipart_ref.
"""

import numpy as np
from typing import Sequence


class FieldBuffer:
    """
    Per-particle field samples in code units.

    Parameters:
        E: Electric field, shape (m, 3)
        B: Magnetic field, shape (m, 3)
        ipart_ref: Particle index corresponding to row 0
    """

    def __init__(self, E: np.ndarray, B: np.ndarray, ipart_ref: int = 0):
        self.E = np.ascontiguousarray(E, dtype=np.float64)
        self.B = np.ascontiguousarray(B, dtype=np.float64)

        if self.E.ndim != 2 or self.E.shape[1] != 3:
            raise ValueError(f"E must have shape (m, 3), got {self.E.shape}")
        if self.B.shape != self.E.shape:
            raise ValueError(f"B shape {self.B.shape} does not match E shape {self.E.shape}")

        self.ipart_ref = int(ipart_ref)

    @classmethod
    def uniform(cls, n: int, E: Sequence[float] = (0.0, 0.0, 0.0),
                B: Sequence[float] = (0.0, 0.0, 0.0), ipart_ref: int = 0) -> "FieldBuffer":
        """Buffer of n identical field samples."""
        E_rows = np.tile(np.asarray(E, dtype=np.float64), (n, 1))
        B_rows = np.tile(np.asarray(B, dtype=np.float64), (n, 1))
        return cls(E_rows, B_rows, ipart_ref)

    def __len__(self) -> int:
        return self.E.shape[0]

    def covers(self, istart: int, iend: int) -> bool:
        """True if rows exist for every particle in [istart, iend)."""
        if iend <= istart:
            return True
        return istart - self.ipart_ref >= 0 and iend - self.ipart_ref <= len(self)

    def check_range(self, istart: int, iend: int):
        if not self.covers(istart, iend):
            raise IndexError(f"Field buffer rows [{self.ipart_ref}, {self.ipart_ref + len(self)}) "
                             f"do not cover particles [{istart}, {iend})")

    def __repr__(self) -> str:
        return f"FieldBuffer(n={len(self)}, ipart_ref={self.ipart_ref})"
