#!/usr/bin/env python3
"""
Eigenray Scenario Runner

Runs one of the reference propagation scenarios, records the wavefront
history and writes the eigenrays and propagation loss.

Scenarios:
    flat:   Isovelocity 1500 m/s ocean with a 3000 m flat bottom. Source
            at 45N 45W, 1000 m deep; target 0.02 deg north at the same
            depth; 10 kHz. Direct, surface and bottom paths.
    curved: Deep isovelocity ocean on a spherical earth. Source 200 m
            deep at 2 kHz; target 1.2 deg north, 150 m deep. One direct
            and three surface-reflected paths caused by earth curvature.

Usage:
    python scripts/eigenray_scenarios.py [--scenario flat|curved] [options]

Examples:
    # Flat-bottom case, results under ./output
    python scripts/eigenray_scenarios.py --scenario flat

    # Curved-earth case with a custom configuration and text logs
    python scripts/eigenray_scenarios.py --scenario curved --config my.yml --text-logs
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from common.config import get_config
from common.logging_config import setup_logging
from oceanray import (
    PropagationLoss,
    WaveQueue,
    WavefrontRecorder,
    linear_sequence,
    write_eigenray_csv,
    write_proploss_netcdf,
)
from oceanray.ocean import FlatBoundary, OceanModel

logger = logging.getLogger("oceanray.scenarios")

SCENARIOS = {
    'flat': {
        'source': (45.0, -45.0, -1000.0),
        'target': (45.02, -45.0, -1000.0),
        'frequencies': [10e3],
        'bottom_depth': 3000.0,
        'de': (-60.0, 1.0, 60.0),
        'az': (-4.0, 1.0, 4.0),
        'time_max': 3.5,
    },
    'curved': {
        'source': (45.0, -45.0, -200.0),
        'target': (46.2, -45.0, -150.0),
        'frequencies': [2000.0],
        'bottom_depth': 1e5,
        'de': (-1.0, 0.05, 1.0),
        'az': (-4.0, 1.0, 4.0),
        'time_max': 120.0,
    },
}


def run_scenario(name: str, config) -> PropagationLoss:
    """Propagate one scenario and return its summed propagation loss."""
    scenario = SCENARIOS[name]
    ocean = OceanModel.for_area(scenario['source'][0],
                                bottom=FlatBoundary(scenario['bottom_depth']))
    loss = PropagationLoss([scenario['target']],
                           total_loss_db=config.proploss.total_loss_db)

    wave = WaveQueue(
        ocean,
        scenario['frequencies'],
        scenario['source'],
        linear_sequence(*scenario['de']),
        linear_sequence(*scenario['az']),
        time_step=config.wavefront.time_step,
        targets=loss,
        integrator=config.wavefront.integrator,
        search_config=config.search,
        domain_tolerance=config.wavefront.domain_tolerance_m,
    )

    output = config.output
    with WavefrontRecorder(output.wavefront_path, wave.grid.de, wave.grid.az,
                           title=f"{name} scenario wavefronts") as recorder:
        wave.attach_recorder(recorder)
        steps = wave.run(scenario['time_max'])

    if wave.persistence_errors:
        logger.warning(f"{len(wave.persistence_errors)} wavefronts could not be recorded")

    loss.sum_eigenrays(coherent=config.proploss.coherent)
    logger.info(f"{name}: {steps} steps, {loss.num_eigenrays} eigenrays, "
                f"loss {loss.intensity.ravel()[0]:.2f} dB")
    for ray in loss.eigenrays(0):
        logger.info(f"  {ray}")

    write_proploss_netcdf(loss, output.proploss_path, title=f"{name} scenario")
    write_eigenray_csv(loss, output.eigenray_csv_path)
    return loss


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a reference eigenray scenario")
    parser.add_argument(
        "--scenario",
        choices=sorted(SCENARIOS),
        default="flat",
        help="Scenario to run"
    )
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--output-dir", default=None, help="Directory for output files")
    parser.add_argument("--text-logs", action="store_true", help="Plain text instead of JSON logs")

    args = parser.parse_args()

    config = get_config(args.config)
    if args.output_dir:
        config.output.output_dir = Path(args.output_dir)

    setup_logging("oceanray", config.output.log_level,
                  log_file=config.output.log_path,
                  json_format=config.output.json_logs and not args.text_logs,
                  run_name=args.scenario)

    run_scenario(args.scenario, config)


if __name__ == "__main__":
    main()
