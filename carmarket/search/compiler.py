"""
Query compiler: untrusted search parameters -> validated filter.

``compile_query`` is pure. It takes the raw parameter mapping a client sent
(camelCase names, string values, repeated keys as lists) and returns a
``CompiledQuery``: an AND of immutable predicates over listing columns plus
an optional geo radius directive kept apart from the filter. Unknown
parameters are ignored.

The read path ANDs the result with the lifecycle visibility predicate; the
compiler itself knows nothing about listing status.

Example:
    >>> compiled = compile_query({"priceMin": "500000", "priceMax": "1000000", "vehicleType": "Car"})
    >>> compiled.filter.clauses
    (Equals(field='vehicle_type', value='Car'), Range(field='price', gte=500000.0, lte=1000000.0, gt=None, lt=None))
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, cast

from carmarket.errors import ValidationError
from carmarket.search.filters import (
    AllOf,
    AnyOf,
    CompiledQuery,
    Contains,
    ContainsAll,
    ContainsAny,
    Equals,
    Filter,
    GeoRadius,
    OneOf,
    Range,
)
from carmarket.utils.params import is_blank, parse_list, to_bool, to_number
from carmarket.vocabulary import ENUM_FIELDS, TEXT_SEARCH_FIELDS

MIN_SEARCH_LENGTH = 2
SEARCH_PARAMS = ("search", "keyword", "q")
TEXT_FILTER_PARAMS = ("make", "model", "city", "variant", "description", "location")

# parameter name -> listing column
ENUM_PARAMS = {
    "condition": "condition",
    "fuelType": "fuel_type",
    "transmission": "transmission",
    "regionalSpec": "regional_spec",
    "bodyType": "body_type",
    "ownerType": "owner_type",
    "warranty": "warranty",
    "vehicleType": "vehicle_type",
}

RANGE_PARAMS = {
    "price": "price",
    "year": "year",
    "mileage": "mileage",
    "carDoors": "car_doors",
    "numberOfCylinders": "number_of_cylinders",
    "engineCapacity": "engine_capacity",
    "horsepower": "horsepower",
    "batteryRange": "battery_range",
    "motorPower": "motor_power",
}

# Short prefixes older clients send (hpMin, engineMax, ...)
RANGE_ALIASES = {
    "carDoors": "doors",
    "numberOfCylinders": "cyl",
    "engineCapacity": "engine",
    "horsepower": "hp",
}

COLOR_PARAMS = {"colorExterior": "color_exterior", "colorInterior": "color_interior"}

GEO_PARAMS = ("radius", "userLat", "userLng")


def _present(params: Mapping[str, Any], name: str) -> bool:
    return name in params and not is_blank(params[name])


def _scalar(value: Any) -> Any:
    """Repeated query keys arrive as lists; scalar params use the first value."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _compile_free_text(params: Mapping[str, Any]) -> Optional[Filter]:
    for name in SEARCH_PARAMS:
        if _scalar(params.get(name)) in (None, ""):
            continue
        term = str(_scalar(params[name])).strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise ValidationError(
                f"Search term must be at least {MIN_SEARCH_LENGTH} characters long",
                field=name,
            )
        return AnyOf(tuple(Contains(field, term) for field in TEXT_SEARCH_FIELDS))
    return None


def _compile_text_filters(params: Mapping[str, Any]) -> list[Filter]:
    clauses: list[Filter] = []
    for name in TEXT_FILTER_PARAMS:
        if _present(params, name):
            term = str(_scalar(params[name])).strip()
            if term:
                clauses.append(Contains(name, term))
    return clauses


def _compile_enums(params: Mapping[str, Any]) -> list[Filter]:
    clauses: list[Filter] = []
    for name, column in ENUM_PARAMS.items():
        if not _present(params, name):
            continue
        values = list(dict.fromkeys(parse_list(params[name])))
        if not values:
            continue
        allowed = ENUM_FIELDS[column]
        invalid = [value for value in values if value not in allowed]
        if invalid:
            raise ValidationError(
                f"Invalid {name} value(s): {', '.join(invalid)}. "
                f"Must be one of: {', '.join(allowed)}",
                field=name,
                allowed=allowed,
            )
        clauses.append(Equals(column, values[0]) if len(values) == 1 else OneOf(column, tuple(values)))
    return clauses


def _compile_collections(params: Mapping[str, Any]) -> list[Filter]:
    clauses: list[Filter] = []
    if _present(params, "features"):
        features = tuple(dict.fromkeys(parse_list(params["features"])))
        if features:
            clauses.append(ContainsAll("features", features))
    for name, column in COLOR_PARAMS.items():
        if _present(params, name):
            colors = tuple(dict.fromkeys(parse_list(params[name])))
            if colors:
                clauses.append(ContainsAny(column, colors))
    return clauses


def _bound(params: Mapping[str, Any], names: tuple[str, ...]) -> Optional[float]:
    for name in names:
        if not _present(params, name):
            continue
        number = to_number(_scalar(params[name]))
        if number is None:
            raise ValidationError(f"{name} must be a number", field=name)
        return number
    return None


def _compile_ranges(params: Mapping[str, Any]) -> list[Filter]:
    clauses: list[Filter] = []
    for name, column in RANGE_PARAMS.items():
        prefixes = (name,) + ((RANGE_ALIASES[name],) if name in RANGE_ALIASES else ())
        low = _bound(params, tuple(f"{prefix}Min" for prefix in prefixes))
        high = _bound(params, tuple(f"{prefix}Max" for prefix in prefixes))
        if low is None and high is None:
            continue
        if low is not None and high is not None and low > high:
            raise ValidationError(f"{name}Min cannot be greater than {name}Max", field=f"{name}Min")
        clauses.append(Range(column, gte=low, lte=high))
    return clauses


def _compile_geo(params: Mapping[str, Any]) -> Optional[GeoRadius]:
    supplied = [name for name in GEO_PARAMS if _present(params, name)]
    if not supplied:
        return None

    missing = [name for name in GEO_PARAMS if name not in supplied]
    if missing:
        raise ValidationError(
            f"Location search requires radius, userLat and userLng (missing: {', '.join(missing)})",
            field=missing[0],
        )

    radius, latitude, longitude = (cast(float, _bound(params, (name,))) for name in GEO_PARAMS)

    if not -90 <= latitude <= 90:
        raise ValidationError("userLat must be between -90 and 90", field="userLat")
    if not -180 <= longitude <= 180:
        raise ValidationError("userLng must be between -180 and 180", field="userLng")
    if radius <= 0:
        raise ValidationError("radius must be greater than 0", field="radius")

    return GeoRadius(latitude=latitude, longitude=longitude, radius_meters=radius * 1000)


def compile_query(params: Mapping[str, Any]) -> CompiledQuery:
    """
    Compile client search parameters into a structured filter.

    Free text (search, keyword or q) supersedes the per-field text filters.
    Enum values are checked against their vocabularies. ``features`` must
    all be present on a listing, while either color parameter matches any of
    its values. Numeric ranges come from ``<field>Min`` / ``<field>Max``.

    Args:
        params: Raw query parameters

    Returns:
        CompiledQuery: Filter and optional geo radius

    Raises:
        ValidationError: Naming the offending parameter (and allowed values for enums)
    """
    if params is None or not isinstance(params, Mapping):
        raise ValidationError("Invalid query parameters")

    clauses: list[Filter] = []

    free_text = _compile_free_text(params)
    if free_text is not None:
        clauses.append(free_text)
    else:
        clauses.extend(_compile_text_filters(params))

    if _present(params, "featured") and to_bool(_scalar(params["featured"])):
        clauses.append(Equals("featured", True))

    clauses.extend(_compile_enums(params))
    clauses.extend(_compile_collections(params))
    clauses.extend(_compile_ranges(params))

    return CompiledQuery(filter=AllOf(tuple(clauses)), geo=_compile_geo(params))
