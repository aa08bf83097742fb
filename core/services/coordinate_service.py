"""WGS84 to GCJ02 coordinate conversion.

GCJ02 is the offset datum required by map providers operating in mainland
China. Points outside the (approximate) mainland bounding box are returned
untouched since the correction formula is meaningless there.
"""

from __future__ import annotations

import math

# Krasovsky 1940 semi-major axis and eccentricity squared used by GCJ02
SEMI_MAJOR_AXIS = 6378245.0
ECCENTRICITY_SQ = 0.00669342162296594323

# Rough mainland China bounding box, not a precise border polygon
CHINA_LAT_RANGE = (18.0, 53.0)
CHINA_LON_RANGE = (73.0, 135.0)


def is_in_china(lat: float, lon: float) -> bool:
    """Return True if (lat, lon) falls inside the mainland bounding box."""
    return (
        CHINA_LAT_RANGE[0] <= lat <= CHINA_LAT_RANGE[1]
        and CHINA_LON_RANGE[0] <= lon <= CHINA_LON_RANGE[1]
    )


def _lat_offset(x: float, y: float) -> float:
    pi = math.pi
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * pi) + 20.0 * math.sin(2.0 * x * pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * pi) + 40.0 * math.sin(y / 3.0 * pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * pi) + 320.0 * math.sin(y * pi / 30.0)) * 2.0 / 3.0
    return ret


def _lon_offset(x: float, y: float) -> float:
    pi = math.pi
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * pi) + 20.0 * math.sin(2.0 * x * pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * pi) + 40.0 * math.sin(x / 3.0 * pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * pi) + 300.0 * math.sin(x / 30.0 * pi)) * 2.0 / 3.0
    return ret


def transform_wgs84_to_gcj02(lat: float, lon: float) -> tuple[float, float]:
    """Convert a WGS84 (lat, lon) pair to GCJ02.

    Returns the input unchanged for points outside mainland China.
    """
    if not is_in_china(lat, lon):
        return lat, lon

    d_lat = _lat_offset(lon - 105.0, lat - 35.0)
    d_lon = _lon_offset(lon - 105.0, lat - 35.0)

    rad_lat = lat / 180.0 * math.pi
    magic = math.sin(rad_lat)
    sqrt_magic = math.sqrt(1 - ECCENTRICITY_SQ * magic * magic)

    d_lat = (d_lat * 180.0) / (
        (SEMI_MAJOR_AXIS * (1 - ECCENTRICITY_SQ)) / (sqrt_magic**3) * math.pi
    )
    d_lon = (d_lon * 180.0) / (SEMI_MAJOR_AXIS / sqrt_magic * math.cos(rad_lat) * math.pi)

    return lat + d_lat, lon + d_lon
