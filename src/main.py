#!/usr/bin/env python3
"""
===============================================================================
FLIGHT ENGINE - MAIN ENTRY POINT
===============================================================================
Plans and flies a single vehicle between two bodies of the configured
world, tick by tick, and reports the plan and the arrival.

USAGE:
    python src/main.py --origin leo_station --destination earth
    python src/main.py --origin earth --destination mars \\
        --vehicle-hull wayfarer --engine ntr_mk1 --fuel 150000
    python src/main.py --origin earth --destination forge_station \\
        --burn-fraction 0.3 --telemetry output/telemetry.csv

DEPENDENCIES:
    numpy, pandas, pyyaml
    Install: pip install -e .

===============================================================================
"""

import argparse
import logging
import sys

from core.config import (
    build_engine_catalog,
    build_hull_catalog,
    build_world,
    configure_logging,
    load_config,
)
from core.constants import KM_TO_M, SECONDS_PER_DAY
from core.data_structures import CrewMember, EngineInstance, Vehicle, VehicleStatus
from guidance.launch_window import compute_launch_window
from simulation.sim_engine import FlightSimulation

logger = logging.getLogger(__name__)

VEHICLE_ID = "cli-vehicle"


def build_vehicle(args: argparse.Namespace) -> Vehicle:
    """A vehicle docked at the origin with one pilot on the helm."""
    pilot = CrewMember(id="pilot", name="Pilot", role="helm")
    return Vehicle(
        id=VEHICLE_ID,
        name="Flight Test",
        hull_id=args.vehicle_hull,
        engine=EngineInstance(definition_id=args.engine),
        fuel_kg=args.fuel,
        crew=[pilot],
        helm_crew_id=pilot.id,
        status=VehicleStatus.DOCKED,
        docked_at=args.origin,
    )


def print_plan(sim: FlightSimulation) -> None:
    plan = sim.vehicles[VEHICLE_ID].active_flight_plan
    print("-" * 70)
    print(f"  Route:        {plan.origin_id} -> {plan.destination_id}")
    print(f"  Distance:     {plan.total_distance_m / KM_TO_M:,.1f} km")
    print(f"  Acceleration: {plan.acceleration_m_s2:.4f} m/s^2")
    print(f"  Burn:         {plan.burn_time_s:,.0f} s (x2)")
    print(f"  Coast:        {plan.coast_time_s:,.0f} s")
    print(f"  Flight time:  {plan.total_time_s:,.0f} s "
          f"({plan.total_time_s / SECONDS_PER_DAY:.2f} days)")
    if plan.estimated_arrival_time is not None:
        print(f"  ETA:          t={plan.estimated_arrival_time:,.0f} s (incl. warm-up)")
    print("-" * 70)


def main(argv=None) -> int:
    """
    Main entry point.  Returns a process exit code.
    """
    parser = argparse.ArgumentParser(
        description='Flight engine: plan and fly one vehicle between two bodies',
    )
    parser.add_argument('--origin', required=True,
                        help='Origin body id')
    parser.add_argument('--destination', required=True,
                        help='Destination body id')
    parser.add_argument('--vehicle-hull', default='station_keeper',
                        help='Hull class id (default: station_keeper)')
    parser.add_argument('--engine', default='chemical_bipropellant',
                        help='Engine id (default: chemical_bipropellant)')
    parser.add_argument('--fuel', type=float, default=8000.0,
                        help='Fuel on board in kg (default: 8000)')
    parser.add_argument('--burn-fraction', type=float, default=1.0,
                        help='Share of the per-leg delta-v budget, 0.1-1.0')
    parser.add_argument('--dock', action='store_true',
                        help='Dock on arrival instead of holding orbit')
    parser.add_argument('--max-ticks', type=int, default=100000,
                        help='Tick limit (default: 100000)')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to flight config YAML')
    parser.add_argument('--start-time', type=float, default=0.0,
                        help='Simulated start time in seconds')
    parser.add_argument('--telemetry', type=str, default=None,
                        help='Write telemetry CSV to this path')

    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)

    try:
        engines = build_engine_catalog(config)
        hulls = build_hull_catalog(config)
        world = build_world(config)
        vehicle = build_vehicle(args)
        sim = FlightSimulation(world, [vehicle], engines, hulls, config,
                               start_time=args.start_time)

        print("=" * 70)
        print("  FLIGHT ENGINE")
        print(f"  {args.origin} -> {args.destination}  "
              f"({args.vehicle_hull}, {args.engine}, {args.fuel:,.0f} kg fuel)")
        print("=" * 70)

        window = compute_launch_window(world[args.origin], world[args.destination],
                                       sim.current_time, world)
        if window is not None:
            print(f"  Alignment:    {window.alignment} "
                  f"({window.current_distance_km:,.0f} km now, "
                  f"min {window.min_distance_km:,.0f} km)")
            if window.next_optimal_in_days is not None:
                print(f"  Next window:  in {window.next_optimal_in_days:.1f} days")

        started = sim.start_flight(VEHICLE_ID, args.origin, args.destination,
                                   dock_on_arrival=args.dock,
                                   burn_fraction=args.burn_fraction)
    except KeyError as exc:
        logger.error("Configuration error: %s", exc.args[0])
        return 2

    if not started:
        logger.error("Flight could not be started")
        return 1
    print_plan(sim)

    sim.run(args.max_ticks)

    if args.telemetry:
        sim.save_telemetry(args.telemetry)

    summary = sim.summary()
    if sim.arrivals:
        arrival = sim.arrivals[-1]
        print(f"  Arrived at {arrival['destination']} on tick {arrival['tick']} "
              f"(t={arrival['time']:,.0f} s), {arrival['status']}")
    else:
        print(f"  Still in flight after {summary['ticks']} ticks")
    print(f"  Fuel consumed: {summary['fuel_consumed'][VEHICLE_ID]:,.1f} kg")
    print("=" * 70)
    return 0


if __name__ == '__main__':
    sys.exit(main())
