"""
Radiative Cooling - Simple Example

An electron beam crosses a constant transverse field and loses energy to
radiation. Compares the three radiation-reaction models:

    - Monte Carlo (stochastic emission, quantum corrected)
    - Corrected Landau-Lifshitz (continuous friction)
    - No radiation

Expected results for chi0 ~ 1:
    - Mean energies of Monte Carlo and corrected Landau-Lifshitz agree
      within a few percent
    - Only Monte Carlo broadens the energy distribution (straggling)
"""

import numpy as np
import matplotlib.pyplot as plt
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from radiation_mc import (FieldBuffer, ParticleArray, RadiationConfig, RadiationTables,
                          create_radiation_model)


def create_beam(n_particles: int, gamma0: float, chi0: float, tables: RadiationTables):
    """
    Electrons along x in E = (0, Ey, 0) chosen to give chi0.

    Returns:
        particles, fields
    """
    electrons = ParticleArray(n_particles, name='electron')
    px = np.sqrt(gamma0**2 - 1.0)
    electrons.initialize_beam(momentum=(px, 0.0, 0.0), charge=-1)

    Ey = chi0 * tables.normalization.norm_E_Schwinger / gamma0
    fields = FieldBuffer.uniform(n_particles, E=(0.0, Ey, 0.0))
    return electrons, fields


def simulate_cooling(model_name: str, tables: RadiationTables, n_particles: int = 2000,
                     gamma0: float = 2000.0, chi0: float = 1.0, n_steps: int = 200,
                     dt: float = 0.05):
    """
    Run one model and record the beam energy.

    Returns:
        mean_gamma (n_steps + 1,), std_gamma (n_steps + 1,), final gammas
    """
    print(f"\n{'='*70}")
    print(f"Radiative Cooling: {model_name}")
    print(f"{'='*70}")
    print(f"  Particles: {n_particles:,}")
    print(f"  gamma0: {gamma0}, chi0: {chi0}")
    print(f"  Steps: {n_steps} x dt={dt}")
    print(f"{'='*70}\n")

    config = RadiationConfig(model=model_name, dt=dt, seed=1)
    model = create_radiation_model(config, tables, verbose=True)
    electrons, fields = create_beam(n_particles, gamma0, chi0, tables)

    mean_gamma = np.zeros(n_steps + 1)
    std_gamma = np.zeros(n_steps + 1)
    mean_gamma[0] = gamma0

    for step in range(n_steps):
        model(electrons, fields)
        gamma = electrons.lorentz_factor()
        mean_gamma[step + 1] = gamma.mean()
        std_gamma[step + 1] = gamma.std()

    print(f"\nResults:")
    print(f"  Final <gamma>: {mean_gamma[-1]:.1f} ({100*(1 - mean_gamma[-1]/gamma0):.1f}% lost)")
    print(f"  Final spread: {std_gamma[-1]:.1f}")
    print(f"  {electrons}")

    return mean_gamma, std_gamma, electrons.lorentz_factor()


def plot_cooling(results: dict, dt: float, save_path=None):
    """Mean energy and spread versus time for each model."""
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))

    colors = {'monte-carlo': 'blue', 'corrected-landau-lifshitz': 'red', 'none': 'gray'}

    for name, (mean_gamma, std_gamma, _) in results.items():
        t = np.arange(len(mean_gamma)) * dt
        ax1.plot(t, mean_gamma, color=colors[name], linewidth=2.5, label=name)
        ax2.plot(t, std_gamma, color=colors[name], linewidth=2.5, label=name)

    ax1.set_xlabel(r'Time [$1/\omega_r$]', fontsize=14, fontweight='bold')
    ax1.set_ylabel(r'$\langle\gamma\rangle$', fontsize=14, fontweight='bold')
    ax1.set_title('Mean Energy', fontsize=16, fontweight='bold')
    ax1.grid(True, alpha=0.3, linestyle='--')
    ax1.legend(fontsize=12)

    ax2.set_xlabel(r'Time [$1/\omega_r$]', fontsize=14, fontweight='bold')
    ax2.set_ylabel(r'$\sigma_\gamma$', fontsize=14, fontweight='bold')
    ax2.set_title('Energy Spread', fontsize=16, fontweight='bold')
    ax2.grid(True, alpha=0.3, linestyle='--')
    ax2.legend(fontsize=12)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved: {save_path}")

    return fig


def plot_photon_spectrum(tables: RadiationTables, gamma0: float = 2000.0, chi0: float = 1.0,
                         n_particles: int = 5000, dt: float = 0.2, save_path=None):
    """Energy spectrum of macro-photons emitted in one step."""
    config = RadiationConfig(dt=dt, photon_sampling=1, photon_gamma_threshold=1.0, seed=2)
    model = create_radiation_model(config, tables)
    electrons, fields = create_beam(n_particles, gamma0, chi0, tables)
    photons = ParticleArray(0, mass=0.0, name='photon')

    model(electrons, fields, photons=photons)
    print(f"\nPhotons emitted: {len(photons):,} ({model.last_stats})")

    energies = photons.lorentz_factor()
    bins = np.logspace(0, np.log10(gamma0), 60)

    plt.figure(figsize=(10, 6))
    plt.hist(energies, bins=bins, weights=photons.weight * energies, color='blue',
             alpha=0.7, label=f'chi0 = {chi0}')
    plt.xscale('log')
    plt.xlabel(r'Photon energy [$m_e c^2$]', fontsize=14, fontweight='bold')
    plt.ylabel(r'$\varepsilon\, dN/d\varepsilon$ [arb.]', fontsize=14, fontweight='bold')
    plt.title('Emitted Photon Spectrum', fontsize=16, fontweight='bold')
    plt.grid(True, alpha=0.3, linestyle='--')
    plt.legend(fontsize=12)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"Figure saved: {save_path}")

    return plt.gcf()


# ============================================================================
# Main Execution
# ============================================================================

if __name__ == "__main__":
    tables_path = Path(__file__).parent.parent.parent / 'data' / 'radiation_tables.h5'
    if tables_path.exists():
        tables = RadiationTables.load(tables_path)
    else:
        print("No table file found, building synthetic tables...")
        tables = RadiationTables.synthetic(size_particle_chi=64, size_photon_chi=64)
    print(tables)

    # Example 1: Model comparison
    print("\n" + "="*70)
    print("Example 1: Cooling with each radiation model")
    print("="*70)

    dt = 0.05
    results = {name: simulate_cooling(name, tables, dt=dt)
               for name in ('monte-carlo', 'corrected-landau-lifshitz', 'none')}

    plot_cooling(results, dt, save_path='radiative_cooling.png')
    plt.show()

    # Example 2: Photon spectrum
    print("\n" + "="*70)
    print("Example 2: Photon spectrum")
    print("="*70)

    plot_photon_spectrum(tables, save_path='photon_spectrum.png')
    plt.show()

    print("\n" + "="*70)
    print("All examples complete!")
    print("="*70 + "\n")
