"""Named places, corridor routes and city zones for the Tanzanian network."""

from dataclasses import dataclass

from core.exceptions import NotFoundError

LatLng = tuple[float, float]

LOCATIONS: dict[str, LatLng] = {
    "Dar es Salaam": (-6.8151812, 39.2864692),
    "Mbeya": (-8.9094, 33.4608),
    "Mwanza": (-2.5164, 32.9175),
    "Arusha": (-3.3869, 36.6830),
    "Dodoma": (-6.1830, 35.7430),
    "Tanga": (-5.0689, 39.2988),
    "Morogoro": (-6.8240, 37.6618),
    "Iringa": (-7.7667, 35.7000),
    "Kigoma": (-4.8765, 29.6262),
    "Mtwara": (-10.3069, 40.1830),
}

# Intermediate waypoints along the main trunk roads, keyed by (origin, destination)
CORRIDORS: dict[tuple[str, str], list[LatLng]] = {
    ("Dar es Salaam", "Mbeya"): [(-6.5, 37.0), (-7.0, 36.0), (-7.5, 34.5), (-8.0, 34.0)],
    ("Dar es Salaam", "Mwanza"): [(-6.0, 37.5), (-5.5, 35.0), (-4.0, 33.0), (-3.0, 33.0)],
    ("Dar es Salaam", "Arusha"): [(-6.0, 37.0), (-5.5, 36.5), (-4.5, 36.0)],
}

DEFAULT_ROUTE_STEPS = 5


@dataclass(frozen=True)
class CityZone:
    """Urban area as a lat/lng bounding box."""

    name: str
    lat_min: float
    lng_min: float
    lat_max: float
    lng_max: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lng_min <= lng <= self.lng_max


CITY_ZONES: tuple[CityZone, ...] = (
    CityZone("Dar es Salaam", -7.0, 39.15, -6.6, 39.4),
    CityZone("Morogoro", -6.92, 37.62, -6.75, 37.71),
    CityZone("Dodoma", -6.2, 35.67, -6.14, 35.79),
    CityZone("Arusha", -3.42, 36.58, -3.27, 36.76),
    CityZone("Mwanza", -2.6, 32.86, -2.4, 32.96),
    CityZone("Mbeya", -9.0, 33.3, -8.8, 33.6),
    CityZone("Tanga", -5.2, 38.9, -5.0, 39.35),
)


def resolve_location(name: str) -> LatLng:
    """Look up a city by name (surrounding whitespace and case ignored)."""
    wanted = name.strip().lower()
    for city, coords in LOCATIONS.items():
        if city.lower() == wanted:
            return coords
    raise NotFoundError(f"Coordinates not found for {name}", details={"location": name})


def _canonical_name(name: str) -> str:
    wanted = name.strip().lower()
    for city in LOCATIONS:
        if city.lower() == wanted:
            return city
    return name


def generate_route(origin: str, destination: str) -> list[LatLng]:
    """Build the waypoint list for a shipment between two named cities.

    Known corridors use their trunk-road waypoints (reversed for the return
    direction); any other pair gets evenly spaced straight-line points.
    """
    start = resolve_location(origin)
    end = resolve_location(destination)

    key = (_canonical_name(origin), _canonical_name(destination))
    if key in CORRIDORS:
        return [start, *CORRIDORS[key], end]
    reverse_key = (key[1], key[0])
    if reverse_key in CORRIDORS:
        return [start, *reversed(CORRIDORS[reverse_key]), end]

    route = [start]
    for i in range(1, DEFAULT_ROUTE_STEPS):
        ratio = i / DEFAULT_ROUTE_STEPS
        route.append(
            (
                start[0] + (end[0] - start[0]) * ratio,
                start[1] + (end[1] - start[1]) * ratio,
            )
        )
    route.append(end)
    return route

