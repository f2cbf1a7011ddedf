"""
geo.py - nearest-ward lookup
=============================
Maps a latitude/longitude to the closest ward centroid and its district.

On PostgreSQL the ordering is done by PostGIS (ST_Distance over geography);
other databases (SQLite in tests) fall back to a haversine scan in Python.
There is no distance cutoff: any point resolves to *some* ward.
"""
import logging
import math
from typing import NamedTuple

from geoalchemy2 import Geography
from sqlalchemy import cast, func
from sqlalchemy.orm import Session

from models import District, Ward

logger = logging.getLogger(__name__)

UNKNOWN_DISTRICT = "Unknown District"
UNKNOWN_WARD     = "Unknown Ward"

EARTH_RADIUS_M = 6_371_000.0


class Location(NamedTuple):
    district_name: str
    ward_no: str


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lng2 - lng1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _geography_point(lng, lat):
    return cast(func.ST_SetSRID(func.ST_MakePoint(lng, lat), 4326), Geography(srid=4326))


def _nearest_postgis(db: Session, latitude: float, longitude: float):
    distance = func.ST_Distance(
        _geography_point(Ward.longitude, Ward.latitude),
        _geography_point(longitude, latitude),
    )
    return (
        db.query(District.name, Ward.ward_no)
        .join(District, District.id == Ward.district_id)
        .order_by(distance, Ward.id)
        .first()
    )


def _nearest_scan(db: Session, latitude: float, longitude: float):
    rows = (
        db.query(District.name, Ward.ward_no, Ward.latitude, Ward.longitude)
        .join(District, District.id == Ward.district_id)
        .order_by(Ward.id)
        .all()
    )
    if not rows:
        return None
    # min() keeps the first of equal distances, i.e. the lowest ward id
    best = min(rows, key=lambda r: haversine_m(latitude, longitude, r[2], r[3]))
    return best[0], best[1]


def resolve_location(db: Session, latitude: float, longitude: float) -> Location:
    if db.get_bind().dialect.name == "postgresql":
        row = _nearest_postgis(db, latitude, longitude)
    else:
        row = _nearest_scan(db, latitude, longitude)

    if row is None:
        logger.warning("No wards loaded; (%s, %s) resolved to the unknown sentinel", latitude, longitude)
        return Location(UNKNOWN_DISTRICT, UNKNOWN_WARD)
    return Location(row[0], str(row[1]))
