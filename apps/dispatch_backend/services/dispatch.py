"""
Dispatch selector: which ready station answers a call.

Either honors an operator-forced station (which must currently be ready;
no fallback to the nearest search) or scans every ready station linearly
and takes the nearest by Haversine distance.

Ties go to the first station in enumeration order (ascending
``station_id``): only a strictly smaller distance replaces the current
best.

No reservation is taken on the chosen station. Two concurrent callers near
the same station may both be routed to it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from apps.dispatch_backend.errors import NoStationsAvailable, StationUnavailable, ValidationError
from apps.dispatch_backend.models import Station
from apps.dispatch_backend.services.readiness import StationPoint, list_ready_stations
from common_core.config import settings
from common_core.geo import distance_km, is_valid_coordinate

log = logging.getLogger("firedispatch.dispatch")


@dataclass(frozen=True)
class Candidate:
    station_id: int
    distance_km: float


@dataclass(frozen=True)
class DispatchDecision:
    station_id: int
    distance_km: float
    candidates: tuple[Candidate, ...]
    within_radius: bool
    max_radius_km: float
    forced: bool = False


def pick_nearest(
    caller_lat: float, caller_lon: float, stations: Iterable[StationPoint]
) -> tuple[Candidate | None, list[Candidate]]:
    best: Candidate | None = None
    candidates: list[Candidate] = []
    for st in stations:
        c = Candidate(st.station_id, distance_km(caller_lat, caller_lon, st.latitude, st.longitude))
        candidates.append(c)
        if best is None or c.distance_km < best.distance_km:
            best = c
    return best, candidates


def _forced_candidate(db, caller_lat: float, caller_lon: float, forced_station_id) -> Candidate:
    if isinstance(forced_station_id, bool) or not isinstance(forced_station_id, int):
        raise ValidationError("force_station_id must be an integer")
    st = db.get(Station, forced_station_id)
    if st is None or not st.is_ready:
        raise StationUnavailable("Forced station is not ready or does not exist")
    return Candidate(st.station_id, distance_km(caller_lat, caller_lon, st.latitude, st.longitude))


def select_station(
    db,
    caller_lat,
    caller_lon,
    forced_station_id: int | None = None,
    max_radius_km: float | None = None,
) -> DispatchDecision:
    if not is_valid_coordinate(caller_lat, caller_lon):
        raise ValidationError("latitude and longitude must be finite numbers within range")

    radius = settings.dispatch_max_radius_km if max_radius_km is None else max_radius_km

    if forced_station_id is not None:
        winner = _forced_candidate(db, caller_lat, caller_lon, forced_station_id)
        candidates = [winner]
        forced = True
    else:
        winner, candidates = pick_nearest(caller_lat, caller_lon, list_ready_stations(db))
        if winner is None:
            raise NoStationsAvailable("No ready stations available")
        forced = False

    decision = DispatchDecision(
        station_id=winner.station_id,
        distance_km=winner.distance_km,
        candidates=tuple(candidates),
        within_radius=winner.distance_km <= radius,
        max_radius_km=radius,
        forced=forced,
    )
    log.info(
        "dispatch_selected",
        extra={
            "station_id": decision.station_id,
            "distance_km": round(decision.distance_km, 3),
            "candidates": len(decision.candidates),
        },
    )
    if not decision.within_radius:
        log.warning(
            "dispatch_outside_radius",
            extra={"station_id": decision.station_id, "distance_km": round(decision.distance_km, 3)},
        )
    return decision
