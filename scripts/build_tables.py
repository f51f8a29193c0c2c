"""
Build synthetic radiation tables and write them to HDF5.

The engines load tables once per run; building them from the quantum
synchrotron spectrum takes a few seconds, loading the HDF5 file a few
milliseconds.

Usage:
    python scripts/build_tables.py data/radiation_tables.h5 --size 128
"""

import argparse
import time
import sys
from pathlib import Path

import numpy as np

# Add parent directory to path to import radiation_mc
sys.path.insert(0, str(Path(__file__).parent.parent))

from radiation_mc.physics.tables import RadiationTables


def build_tables(output, min_chi=1e-3, max_chi=1e2, size_particle_chi=128,
                 size_photon_chi=128, n_quad=2000):
    """Build tables, save them and check the saved copy."""
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    print(f"Building tables: chi in [{min_chi:.1e}, {max_chi:.1e}], "
          f"{size_particle_chi} x {size_photon_chi}")

    start = time.time()
    tables = RadiationTables.synthetic(min_particle_chi=min_chi, max_particle_chi=max_chi,
                                       size_particle_chi=size_particle_chi,
                                       size_photon_chi=size_photon_chi, n_quad=n_quad)
    time_build = time.time() - start
    print(f"  Build: {time_build:.2f}s")

    tables.save(output)

    start = time.time()
    loaded = RadiationTables.load(output)
    time_load = time.time() - start
    print(f"  Load: {time_load*1000:.1f}ms")

    # Verify correctness
    assert np.array_equal(tables.xi, loaded.xi), "Data mismatch!"
    assert np.array_equal(tables.integfochi, loaded.integfochi), "Data mismatch!"

    print(f"  integfochi: {loaded.integfochi[0]:.3f} (chi={min_chi:.0e}) -> "
          f"{loaded.integfochi[-1]:.3f} (chi={max_chi:.0e})")
    print(f"  ✓ Saved: {output}")
    return loaded


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument('output', nargs='?', default='data/radiation_tables.h5')
    parser.add_argument('--min-chi', type=float, default=1e-3)
    parser.add_argument('--max-chi', type=float, default=1e2)
    parser.add_argument('--size', type=int, default=128,
                        help='rows (particle chi) and columns (photon chi)')
    parser.add_argument('--n-quad', type=int, default=2000)
    args = parser.parse_args()

    build_tables(args.output, args.min_chi, args.max_chi, args.size, args.size, args.n_quad)
