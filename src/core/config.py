"""
Configuration loading for the flight engine.

The configuration is a single YAML document (see
``config/flight_config.yaml``) with the sections::

    simulation:   tick_seconds, reference_body, solver_iterations,
                  solver_divergence_tolerance
    logging:      level, format
    engines:      list of engine definitions
    hulls:        list of hull classes
    bodies:       list of bodies, each with optional ``orbital`` block

Usage
-----
    config = load_config()
    engines = build_engine_catalog(config)
    hulls = build_hull_catalog(config)
    world = build_world(config)
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml

from core.catalogs import Catalog, EngineDefinition, HullClass
from core.constants import (
    DAYS_PER_YEAR,
    DEFAULT_REFERENCE_BODY_ID,
    SECONDS_PER_DAY,
    SECONDS_PER_TICK,
    SOLVER_DIVERGENCE_TOLERANCE,
    SOLVER_ITERATIONS,
)
from core.data_structures import Body, OrbitalParams, World

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "flight_config.yaml"

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the flight configuration from a YAML file.

    Args:
        config_path: Path to YAML config. Defaults to config/flight_config.yaml

    Returns:
        Dictionary of configuration sections
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    logger.info("Loading configuration from: %s", path)
    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return config


def configure_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Apply the ``logging`` section with ``logging.basicConfig``."""
    section = (config or {}).get("logging", {}) or {}
    level_name = str(section.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=section.get("format", DEFAULT_LOG_FORMAT),
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def simulation_settings(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the ``simulation`` section with defaults filled in."""
    section = config.get("simulation", {}) or {}
    return {
        "tick_seconds": float(section.get("tick_seconds", SECONDS_PER_TICK)),
        "reference_body": str(section.get("reference_body", DEFAULT_REFERENCE_BODY_ID)),
        "solver_iterations": int(section.get("solver_iterations", SOLVER_ITERATIONS)),
        "solver_divergence_tolerance": float(
            section.get("solver_divergence_tolerance", SOLVER_DIVERGENCE_TOLERANCE)
        ),
    }


def build_engine_catalog(config: Dict[str, Any]) -> Catalog:
    return Catalog("engine", (EngineDefinition.from_config(e) for e in config.get("engines", [])))


def build_hull_catalog(config: Dict[str, Any]) -> Catalog:
    return Catalog("hull", (HullClass.from_config(h) for h in config.get("hulls", [])))


def build_world(config: Dict[str, Any]) -> World:
    """
    Build the body registry from the ``bodies`` section.

    Orbital periods may be given in seconds (``period_sec``), days
    (``period_days``) or years (``period_years``); angles in radians
    (``initial_angle_rad``) or degrees (``initial_angle_deg``).  Bodies
    without an ``orbital`` block keep the static ``position`` and
    ``distance_from_reference_km`` they are listed with.

    Raises:
        ValueError: On invalid orbital parameters or cyclic parent chains.
    """
    bodies = []
    for entry in config.get("bodies", []):
        orbital = None
        orbital_cfg = entry.get("orbital")
        if orbital_cfg is not None:
            orbital = OrbitalParams(
                parent_id=orbital_cfg.get("parent"),
                orbital_radius_km=float(orbital_cfg["radius_km"]),
                orbital_period_sec=_period_seconds(orbital_cfg),
                initial_angle_rad=_initial_angle(orbital_cfg),
            )
        bodies.append(Body(
            id=str(entry["id"]),
            name=str(entry.get("name", entry["id"])),
            orbital=orbital,
            body_type=str(entry.get("type", "")),
            position=entry.get("position", [0.0, 0.0]),
            distance_from_reference_km=float(entry.get("distance_from_reference_km", 0.0)),
        ))
    reference = simulation_settings(config)["reference_body"]
    world = World(bodies, reference_body_id=reference)
    logger.debug("Built world with %d bodies (reference=%s)", len(world), reference)
    return world


def _period_seconds(orbital_cfg: Dict[str, Any]) -> float:
    if "period_sec" in orbital_cfg:
        return float(orbital_cfg["period_sec"])
    if "period_days" in orbital_cfg:
        return float(orbital_cfg["period_days"]) * SECONDS_PER_DAY
    if "period_years" in orbital_cfg:
        return float(orbital_cfg["period_years"]) * DAYS_PER_YEAR * SECONDS_PER_DAY
    return 0.0


def _initial_angle(orbital_cfg: Dict[str, Any]) -> float:
    if "initial_angle_deg" in orbital_cfg:
        return float(np.deg2rad(float(orbital_cfg["initial_angle_deg"])))
    return float(orbital_cfg.get("initial_angle_rad", 0.0))
