# services/geo.py
import math
import re
from dataclasses import dataclass
from typing import Optional

from services.errors import CoordinateParseError

EARTH_RADIUS_METERS = 6_371_000.0

_NUMBER = r"(-?\d+(?:\.\d+)?)"
# Googleマップ等のURL: .../@35.6812,139.7671,17z
_AT_PATTERN = re.compile(r"@" + _NUMBER + r"," + _NUMBER)
# 埋め込みデータ形式: ...!3d35.6812!4d139.7671
_DATA_PATTERN = re.compile(r"!3d" + _NUMBER + r"!4d" + _NUMBER)
# 単純な "lat,lon" / "lat lon"
_PLAIN_PATTERN = re.compile(r"^\s*" + _NUMBER + r"\s*(?:,|\s)\s*" + _NUMBER + r"\s*$")


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """2点間の大円距離（haversine）"""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def parse_coordinates(text: str) -> Optional[Coordinate]:
    """自由入力テキストから座標を取り出す（見つからなければNone）"""
    if not text:
        return None
    trimmed = text.strip()
    for pattern in (_AT_PATTERN, _DATA_PATTERN):
        match = pattern.search(trimmed)
        if match:
            coord = Coordinate(float(match.group(1)), float(match.group(2)))
            if coord.is_valid():
                return coord
    match = _PLAIN_PATTERN.match(trimmed)
    if match:
        coord = Coordinate(float(match.group(1)), float(match.group(2)))
        if coord.is_valid():
            return coord
    return None


def require_coordinates(text: str) -> Coordinate:
    coord = parse_coordinates(text)
    if coord is None:
        raise CoordinateParseError(f"Could not parse coordinates: {text!r}")
    return coord
