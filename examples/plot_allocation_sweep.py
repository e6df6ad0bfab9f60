"""
Standalone plotting script - sweeps single-axis commands through the allocator
and plots thruster forces and residuals, using the static geometry in
config/riptide.yaml.

Run from the repository root:
    python examples/plot_allocation_sweep.py
"""
import os

import numpy as np
import matplotlib.pyplot as plt

from thrust_mapper.config import load_config
from thrust_mapper.equations import AXES
from thrust_mapper.thrust_allocator import AccelerationCommand, ThrustAllocator
from thrust_mapper.vehicle import THRUSTER_ORDER

CONFIG = os.path.join(os.path.dirname(__file__), '..', 'config', 'riptide.yaml')

print("="*60)
print("THRUST ALLOCATION - SINGLE AXIS SWEEPS")
print("="*60)

os.makedirs('plots', exist_ok=True)

config = load_config(CONFIG)
allocator = ThrustAllocator.from_config(config, config.geometry.static_geometry())

sweeps = {
    'surge': np.linspace(-3.0, 3.0, 61),
    'heave': np.linspace(-3.0, 3.0, 61),
    'roll': np.linspace(-20.0, 20.0, 61),
    'yaw': np.linspace(-10.0, 10.0, 61),
}

for axis, values in sweeps.items():
    print(f"\nSweeping {axis} over [{values[0]:.1f}, {values[-1]:.1f}]...")
    forces = []
    residuals = []
    not_converged = 0
    for v in values:
        result = allocator.allocate(AccelerationCommand(**{axis: float(v)}))
        forces.append(result.force_vector())
        residuals.append([result.residuals[a] for a in AXES])
        not_converged += 0 if result.converged else 1
    forces = np.array(forces)
    residuals = np.array(residuals)
    print(f"  non-converged cycles: {not_converged}/{len(values)}")
    print(f"  max |force|: {np.max(np.abs(forces)):.2f} N")

    fig, axes = plt.subplots(2, 1, figsize=(10, 8), sharex=True)
    fig.suptitle(f'{axis.capitalize()} command sweep', fontsize=14, fontweight='bold')

    ax = axes[0]
    for i, thruster in enumerate(THRUSTER_ORDER):
        ax.plot(values, forces[:, i], label=thruster.value, linewidth=1.5)
    ax.axhline(config.force_limits[THRUSTER_ORDER[0]][1], color='k', linestyle='--', linewidth=0.8)
    ax.axhline(config.force_limits[THRUSTER_ORDER[0]][0], color='k', linestyle='--', linewidth=0.8)
    ax.set_ylabel('Force [N]')
    ax.legend(ncol=2, fontsize=8)
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    for j, a in enumerate(AXES):
        ax.plot(values, residuals[:, j], label=a, linewidth=1.5)
    ax.set_xlabel(f'Commanded {axis}')
    ax.set_ylabel('Residual')
    ax.legend(ncol=3, fontsize=8)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    out = os.path.join('plots', f'sweep_{axis}.png')
    plt.savefig(out, dpi=150)
    plt.close(fig)
    print(f"  saved {out}")

print("\nDone.")
