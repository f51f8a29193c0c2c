#!/usr/bin/env python3
"""
Time the serial, threads and vector backends on the same beam.
"""
import time
import numpy as np
from radiation_mc import (FieldBuffer, ParticleArray, RadiationConfig, RadiationMonteCarlo,
                          RadiationTables)


def make_beam(n_particles, tables, gamma0=1000.0, chi0=0.5):
    electrons = ParticleArray(n_particles, name='electron')
    electrons.initialize_beam(momentum=(np.sqrt(gamma0**2 - 1.0), 0.0, 0.0),
                              momentum_spread=0.05, seed=0)
    Ey = chi0 * tables.normalization.norm_E_Schwinger / gamma0
    return electrons, FieldBuffer.uniform(n_particles, E=(0.0, Ey, 0.0))


def time_backend(backend, tables, n_particles, n_steps=5):
    config = RadiationConfig(dt=0.5, backend=backend, photon_sampling=2, seed=3)
    model = RadiationMonteCarlo(config, tables)
    electrons, fields = make_beam(n_particles, tables)
    photons = ParticleArray(0, mass=0.0, name='photon')

    # Warm-up (JIT compilation)
    warm, warm_fields = make_beam(100, tables)
    model(warm, warm_fields, photons=ParticleArray(0, mass=0.0))

    start = time.time()
    energy = model.run_steps(electrons, fields, n_steps, photons=photons).sum()
    elapsed = time.time() - start

    return elapsed, energy, len(photons)


def compare_backends():
    """Compare backend throughput."""
    print("\n" + "="*70)
    print("BACKEND COMPARISON")
    print("="*70)

    tables = RadiationTables.synthetic(size_particle_chi=32, size_photon_chi=32)

    for n_particles in (10_000, 100_000):
        print(f"\n{n_particles:,} particles:")
        serial_time = None
        for backend in ('serial', 'threads', 'vector'):
            elapsed, energy, n_photons = time_backend(backend, tables, n_particles)
            if serial_time is None:
                serial_time = elapsed
            print(f"   {backend:8s} {elapsed:7.3f}s  "
                  f"({n_particles*5/elapsed:,.0f} particle-steps/s, "
                  f"speedup {serial_time/elapsed:4.1f}x)  "
                  f"radiated {energy/n_particles:.3f}/particle, photons {n_photons:,}")


if __name__ == "__main__":
    compare_backends()
