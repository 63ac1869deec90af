"""
Read-only engine and hull catalogs.

Engine and hull records are reference data: they are loaded once from the
configuration and then looked up by id from the propulsion model and the
flight planner.  Both catalogs are immutable so they can be shared freely
between planners, simulations and tests.

Structures
----------
EngineDefinition  -- Thrust, rated delta-v and warm-up behaviour of a drive.
HullClass         -- Hull mass, cargo volume and crew capacity.
Catalog           -- Immutable id-keyed lookup used for both tables.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, Iterator, TypeVar


class UnknownCatalogEntryError(KeyError):
    """Raised when an engine or hull id is not present in its catalog.

    Referencing an unknown id is a configuration error, so callers are not
    expected to recover from it.
    """


@dataclass(frozen=True)
class EngineDefinition:
    """A propulsion unit as listed in the engine catalog.

    Attributes
    ----------
    id : str
        Catalog key.
    name : str
        Display name.
    family : str
        Propulsion family, e.g. ``"Chemical Bipropellant"`` or
        ``"Nuclear Fission"``.  Used for the canonical Isp lookup.
    thrust : float
        Thrust in newtons.
    max_delta_v : float
        Rated total delta-v budget in m/s.
    warmup_rate : float
        Warm-up progress in percent per tick.
    fuel_type : str
        Propellant name, informational only.
    """
    id: str
    name: str
    family: str
    thrust: float
    max_delta_v: float
    warmup_rate: float = 100.0
    fuel_type: str = ""

    @classmethod
    def from_config(cls, entry: Dict[str, Any]) -> "EngineDefinition":
        return cls(
            id=str(entry["id"]),
            name=str(entry.get("name", entry["id"])),
            family=str(entry.get("family", "")),
            thrust=float(entry["thrust"]),
            max_delta_v=float(entry["max_delta_v"]),
            warmup_rate=float(entry.get("warmup_rate", 100.0)),
            fuel_type=str(entry.get("fuel_type", "")),
        )


@dataclass(frozen=True)
class HullClass:
    """A vehicle hull as listed in the hull catalog."""
    id: str
    name: str
    mass: float                 # kg, empty hull
    cargo_capacity: float       # kg, shared fuel + cargo volume
    max_crew: int

    @classmethod
    def from_config(cls, entry: Dict[str, Any]) -> "HullClass":
        return cls(
            id=str(entry["id"]),
            name=str(entry.get("name", entry["id"])),
            mass=float(entry["mass"]),
            cargo_capacity=float(entry["cargo_capacity"]),
            max_crew=int(entry["max_crew"]),
        )


T = TypeVar("T")


class Catalog(Mapping, Generic[T]):
    """Immutable id-keyed lookup table.

    Parameters
    ----------
    kind : str
        Human-readable catalog name used in error messages
        (``"engine"``, ``"hull"``).
    entries : iterable
        Records exposing an ``id`` attribute.  Duplicate ids are rejected.
    """

    def __init__(self, kind: str, entries: Iterable[T]) -> None:
        table: Dict[str, T] = {}
        for entry in entries:
            key = getattr(entry, "id")
            if key in table:
                raise ValueError(f"Duplicate {kind} id in catalog: {key}")
            table[key] = entry
        self.kind = kind
        self._table = MappingProxyType(table)

    def __getitem__(self, key: str) -> T:
        try:
            return self._table[key]
        except KeyError:
            raise UnknownCatalogEntryError(f"Unknown {self.kind} id: {key}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"Catalog({self.kind!r}, {len(self)} entries)"
