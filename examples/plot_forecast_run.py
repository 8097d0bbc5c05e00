"""
Plot a forecast-driven solar loop run.

Produces:
  1. tank_temperature.png: Tank temperature and forecast air temperature
  2. energy_flows.png: Absorbed vs transferred energy per period, with irradiance

Run from project root:
    python examples/plot_forecast_run.py [configs/baseline.yaml]
"""

import os
import sys

import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from solar_loop.config import build_engine, load_config

# ── Style ──────────────────────────────────────────────────────────────────────
plt.rcParams.update({
    'figure.dpi': 150,
    'savefig.dpi': 150,
    'font.size': 11,
    'axes.titlesize': 13,
    'axes.labelsize': 11,
    'legend.fontsize': 9,
    'figure.facecolor': 'white',
    'axes.facecolor': '#fafafa',
    'axes.grid': True,
    'grid.alpha': 0.3,
})

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
RESULTS_DIR = os.path.join(ROOT_DIR, 'results')


def run_simulation(config_path):
    """Run the configured scenario and return the engine with populated history."""
    config = load_config(config_path)
    engine = build_engine(config)
    engine.run(config.period_count)
    return engine


def period_hours(engine):
    h = engine.history.as_arrays()
    return h['period_index'] * engine.constants.step_hours


def day_formatter(ax, label='Time (days)'):
    """Format x-axis as days instead of hours."""
    ax.xaxis.set_major_formatter(ticker.FuncFormatter(lambda x, _: f'{x/24:.0f}'))
    ax.set_xlabel(label)


def plot_tank_temperature(engine):
    """Plot 1: Tank temperature against forecast air temperature."""
    h = engine.history.as_arrays()
    time = period_hours(engine)

    fig, ax = plt.subplots(figsize=(10, 4.5))
    ax.plot(time, h['tank_temperature'], color='#d62728', linewidth=2.5, label='Storage Tank')
    ax.plot(time, h['air_temperature'], color='#1f77b4', linewidth=1.5, alpha=0.7, label='Air')
    ax.axhline(y=engine.tank.params.ambient_temperature, color='grey', linestyle=':',
               linewidth=1, label='Tank ambient')

    ax.set_ylabel('Temperature (°C)')
    ax.set_title('Tank Temperature')
    ax.legend(loc='upper left', framealpha=0.9)
    day_formatter(ax)
    fig.tight_layout()
    fig.savefig(os.path.join(RESULTS_DIR, 'tank_temperature.png'), bbox_inches='tight')
    plt.close(fig)
    print('  Saved tank_temperature.png')


def plot_energy_flows(engine):
    """Plot 2: Per-period absorbed and transferred energy with irradiance."""
    h = engine.history.as_arrays()
    time = period_hours(engine)
    width = 0.4 * engine.constants.step_hours

    fig, ax1 = plt.subplots(figsize=(10, 4))

    ax2 = ax1.twinx()
    ax2.fill_between(time, 0, h['irradiance_in'], color='#ffcc00', alpha=0.3, label='Irradiance')
    ax2.set_ylabel('Irradiance (W/m²)', color='#b08800')
    ax2.tick_params(axis='y', labelcolor='#b08800')

    ax1.bar(time - width / 2, h['energy_absorbed'] / 1e6, width=width,
            color='#ff7f0e', label='Absorbed', zorder=5)
    ax1.bar(time + width / 2, h['energy_transferred'] / 1e6, width=width,
            color='#2ca02c', label='Transferred', zorder=5)
    ax1.set_ylabel('Energy per period (MJ)')
    ax1.set_title('Collector Energy Flows')

    lines1, labels1 = ax1.get_legend_handles_labels()
    lines2, labels2 = ax2.get_legend_handles_labels()
    ax1.legend(lines1 + lines2, labels1 + labels2, loc='upper right', framealpha=0.9)

    day_formatter(ax1)
    fig.tight_layout()
    fig.savefig(os.path.join(RESULTS_DIR, 'energy_flows.png'), bbox_inches='tight')
    plt.close(fig)
    print('  Saved energy_flows.png')


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else os.path.join(ROOT_DIR, 'configs', 'baseline.yaml')
    os.makedirs(RESULTS_DIR, exist_ok=True)

    print(f'Running {config_path}...')
    engine = run_simulation(config_path)

    summary = engine.history.summary()
    print(f"  Absorbed:    {summary['total_absorbed'] / 1e6:.1f} MJ")
    print(f"  Transferred: {summary['total_transferred'] / 1e6:.1f} MJ")
    print(f"  Final tank:  {summary['final_temperature']:.1f}°C "
          f"(peak {summary['peak_temperature']:.1f}°C)")

    print('\nGenerating plots:')
    plot_tank_temperature(engine)
    plot_energy_flows(engine)

    print(f'\nAll plots saved to {RESULTS_DIR}/')


if __name__ == '__main__':
    main()
