"""
Listing payload validation and the per-vehicle-type field policy.

``prepare_new_listing`` gates the create transition: it checks required
fields for the vehicle type, formats and ranges, enum vocabularies and the
image count, then returns the column values to insert. ``prepare_edit``
does the same for partial updates and enforces mileage rollback protection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from carmarket.errors import ValidationError
from carmarket.utils.params import is_blank, parse_list, to_int, to_number
from carmarket.vocabulary import ENUM_FIELDS, VEHICLE_TYPES

CONTACT_NUMBER_PATTERN = re.compile(r"^\+?\d{9,15}$")
MIN_YEAR = 1900
MIN_IMAGES = 1
MAX_IMAGES = 10
LARGE_MILEAGE_INCREASE = 50_000
LOW_MILEAGE_AGE_YEARS = 5
LOW_MILEAGE_THRESHOLD = 10_000
DEFAULT_CAR_DOORS = 4

LOW_MILEAGE_REASON = "Suspiciously low mileage for vehicle age"
LARGE_INCREASE_REASON = "Large mileage increase detected"

BASE_REQUIRED = ("title", "make", "model", "year", "condition", "price", "city", "contact_number")

TEXT_FIELDS = (
    "title",
    "description",
    "variant",
    "color_exterior",
    "color_interior",
    "city",
    "location",
    "contact_number",
)
INT_FIELDS = ("year", "mileage", "car_doors", "number_of_cylinders", "horsepower")
FLOAT_FIELDS = ("price", "engine_capacity", "battery_range", "motor_power", "latitude", "longitude")

POLICY_FIELDS = (
    "engine_capacity",
    "horsepower",
    "number_of_cylinders",
    "body_type",
    "car_doors",
    "battery_range",
    "motor_power",
)

EDITABLE_FIELDS = frozenset(
    TEXT_FIELDS + INT_FIELDS + FLOAT_FIELDS + tuple(ENUM_FIELDS) + ("make", "model")
) - {"vehicle_type"}


@dataclass(frozen=True)
class FieldPolicy:
    """
    Which attributes a vehicle type requires and accepts.

    Attributes:
        required: Fields that must be present and non-blank
        engine: Accepts engine_capacity, horsepower and number_of_cylinders
        body_type: Accepts body_type
        doors: Accepts car_doors (defaults to 4)
        electric: Accepts battery_range and motor_power
    """

    required: tuple[str, ...]
    engine: bool = True
    body_type: bool = False
    doors: bool = False
    electric: bool = False


FIELD_POLICIES: dict[str, FieldPolicy] = {
    "Car": FieldPolicy(
        required=BASE_REQUIRED
        + (
            "fuel_type",
            "engine_capacity",
            "transmission",
            "regional_spec",
            "body_type",
            "warranty",
            "owner_type",
        ),
        body_type=True,
        doors=True,
    ),
    "Bus": FieldPolicy(required=BASE_REQUIRED + ("fuel_type", "body_type"), body_type=True),
    "Truck": FieldPolicy(required=BASE_REQUIRED + ("fuel_type", "body_type"), body_type=True),
    "Van": FieldPolicy(
        required=BASE_REQUIRED + ("fuel_type", "body_type"), body_type=True, doors=True
    ),
    "Bike": FieldPolicy(required=BASE_REQUIRED),
    "E-bike": FieldPolicy(required=BASE_REQUIRED, engine=False, electric=True),
}


@dataclass
class PreparedListing:
    """Validated column values plus the child collections to store."""

    values: dict[str, Any]
    images: Optional[list[str]] = None
    features: Optional[list[str]] = field(default=None)


def normalize_name(value: Any) -> str:
    """
    Normalize a make or model for storage and duplicate matching.

    Trims, collapses whitespace and capitalizes each token.

    Example:
        >>> normalize_name("  land   ROVER ")
        'Land Rover'
    """
    return " ".join(token.capitalize() for token in str(value).split())


def _check_enum(name: str, value: str) -> None:
    allowed = ENUM_FIELDS[name]
    if value not in allowed:
        raise ValidationError(
            f"Invalid {name} value '{value}'. Must be one of: {', '.join(allowed)}",
            field=name,
            allowed=allowed,
        )


def _check_year(year: Optional[int], now: datetime) -> int:
    max_year = now.year + 1
    if year is None or not MIN_YEAR <= year <= max_year:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {max_year}.", field="year")
    return year


def _check_price(price: Optional[float]) -> float:
    if price is None or price <= 0:
        raise ValidationError("Price must be a positive number.", field="price")
    return price


def _check_contact_number(value: Any) -> str:
    number = str(value).strip()
    if not CONTACT_NUMBER_PATTERN.match(number):
        raise ValidationError("Invalid contact number. Must be 9-15 digits.", field="contact_number")
    return number


def _check_coordinates(values: dict[str, Any]) -> None:
    latitude, longitude = values.get("latitude"), values.get("longitude")
    if (latitude is None) != (longitude is None):
        raise ValidationError("Latitude and longitude must be provided together", field="latitude")
    if latitude is not None and not -90 <= latitude <= 90:
        raise ValidationError("Latitude must be between -90 and 90", field="latitude")
    if longitude is not None and not -180 <= longitude <= 180:
        raise ValidationError("Longitude must be between -180 and 180", field="longitude")


def _check_images(raw: Any) -> list[str]:
    images = parse_list(raw)
    if len(images) < MIN_IMAGES:
        raise ValidationError("At least one image is required.", field="images")
    if len(images) > MAX_IMAGES:
        raise ValidationError(f"Maximum {MAX_IMAGES} images allowed per listing.", field="images")
    return images


def _coerce(data: Mapping[str, Any], names: tuple[str, ...], convert: Any) -> dict[str, Any]:
    coerced: dict[str, Any] = {}
    for name in names:
        if name not in data or is_blank(data[name]):
            continue
        value = convert(data[name])
        if value is None:
            raise ValidationError(f"{name} must be a number", field=name)
        coerced[name] = value
    return coerced


def apply_field_policy(vehicle_type: str, values: dict[str, Any]) -> dict[str, Any]:
    """
    Drop attributes the vehicle type does not carry and fill type defaults.

    Args:
        vehicle_type: One of VEHICLE_TYPES
        values: Candidate column values

    Returns:
        dict: Values with the policy applied (a new dict)
    """
    policy = FIELD_POLICIES[vehicle_type]
    result = dict(values)

    if not policy.engine:
        for name in ("engine_capacity", "horsepower", "number_of_cylinders"):
            result[name] = None
    if not policy.body_type:
        result["body_type"] = None
    if policy.doors:
        doors = result.get("car_doors")
        result["car_doors"] = doors if doors and doors > 0 else DEFAULT_CAR_DOORS
    else:
        result["car_doors"] = None
    if policy.electric:
        result["fuel_type"] = result.get("fuel_type") or "Electric"
        result["transmission"] = result.get("transmission") or "Automatic"
    else:
        result["battery_range"] = None
        result["motor_power"] = None

    return result


def prepare_new_listing(data: Mapping[str, Any], now: datetime) -> PreparedListing:
    """
    Validate a create payload and build the listing's column values.

    Args:
        data: Client payload keyed by listing column name, plus ``images``
            and ``features``
        now: Current time (for the year range and the low-mileage check)

    Returns:
        PreparedListing: Column values, image URLs and features

    Raises:
        ValidationError: Naming the first offending field
    """
    vehicle_type = str(data.get("vehicle_type") or "Car").strip()
    if vehicle_type not in VEHICLE_TYPES:
        raise ValidationError(
            f"Invalid vehicle type. Must be one of: {', '.join(VEHICLE_TYPES)}",
            field="vehicle_type",
            allowed=VEHICLE_TYPES,
        )

    missing = [name for name in FIELD_POLICIES[vehicle_type].required if is_blank(data.get(name))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    values: dict[str, Any] = {"vehicle_type": vehicle_type}
    for name in TEXT_FIELDS:
        if not is_blank(data.get(name)):
            values[name] = str(data[name]).strip()
    values.update(_coerce(data, INT_FIELDS, to_int))
    values.update(_coerce(data, FLOAT_FIELDS, to_number))

    for name in ENUM_FIELDS:
        if name == "vehicle_type" or is_blank(data.get(name)):
            continue
        values[name] = str(data[name]).strip()
        _check_enum(name, values[name])

    values["make"] = normalize_name(data["make"])
    values["model"] = normalize_name(data["model"])
    values["contact_number"] = _check_contact_number(data["contact_number"])
    values["price"] = _check_price(values.get("price"))
    values["year"] = _check_year(values.get("year"), now)

    mileage = values.get("mileage", 0)
    if mileage < 0:
        raise ValidationError("Mileage cannot be negative.", field="mileage")
    values["mileage"] = mileage

    _check_coordinates(values)

    suspicious = now.year - values["year"] > LOW_MILEAGE_AGE_YEARS and mileage < LOW_MILEAGE_THRESHOLD
    values["mileage_flagged"] = suspicious
    values["mileage_flag_reason"] = LOW_MILEAGE_REASON if suspicious else None

    return PreparedListing(
        values=apply_field_policy(vehicle_type, values),
        images=_check_images(data.get("images")),
        features=parse_list(data.get("features")),
    )


def prepare_edit(
    current: Mapping[str, Any], updates: Mapping[str, Any], now: datetime
) -> PreparedListing:
    """
    Validate a partial update against the listing's current values.

    Mileage may never decrease. An increase above 50,000 is accepted but
    flags the listing for moderation; a normal increase clears an earlier
    flag. Lifecycle columns are not editable.

    Args:
        current: Current listing row
        updates: Client payload with the fields to change
        now: Current time

    Returns:
        PreparedListing: Column changes, plus images/features when supplied

    Raises:
        ValidationError: On bad input or a mileage rollback
    """
    if "status" in updates:
        raise ValidationError(
            "Status cannot be changed by editing; use the sold, available or relist actions",
            field="status",
        )

    candidate = {k: v for k, v in updates.items() if k in EDITABLE_FIELDS}
    changes: dict[str, Any] = {}

    for name in TEXT_FIELDS:
        if name in candidate:
            changes[name] = None if is_blank(candidate[name]) else str(candidate[name]).strip()
    changes.update(_coerce(candidate, INT_FIELDS, to_int))
    changes.update(_coerce(candidate, FLOAT_FIELDS, to_number))

    for name in ENUM_FIELDS:
        if name in candidate and not is_blank(candidate[name]):
            changes[name] = str(candidate[name]).strip()
            _check_enum(name, changes[name])

    for name in ("make", "model"):
        if name in candidate:
            if is_blank(candidate[name]):
                raise ValidationError(f"{name} cannot be blank", field=name)
            changes[name] = normalize_name(candidate[name])

    for name in ("title", "city", "contact_number"):
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} cannot be blank", field=name)
    if "contact_number" in changes:
        changes["contact_number"] = _check_contact_number(changes["contact_number"])
    if "price" in candidate:
        changes["price"] = _check_price(changes.get("price"))
    if "year" in candidate:
        changes["year"] = _check_year(changes.get("year"), now)

    if "mileage" in changes:
        changes.update(_mileage_changes(current, changes["mileage"]))

    merged = {**dict(current), **changes}
    _check_coordinates(merged)
    vehicle_type = current.get("vehicle_type") or "Car"
    if vehicle_type in FIELD_POLICIES:
        policed = apply_field_policy(vehicle_type, merged)
        for name in POLICY_FIELDS:
            if name in changes:
                changes[name] = policed[name]

    if changes:
        changes["updated_at"] = now

    return PreparedListing(
        values=changes,
        images=_check_images(updates["images"]) if "images" in updates else None,
        features=parse_list(updates["features"]) if "features" in updates else None,
    )


def _mileage_changes(current: Mapping[str, Any], new_mileage: int) -> dict[str, Any]:
    if new_mileage < 0:
        raise ValidationError("Mileage cannot be negative.", field="mileage")

    previous = current.get("mileage")
    if previous is None:
        return {"mileage": new_mileage}
    if new_mileage < previous:
        raise ValidationError(
            f"Mileage cannot be decreased (current: {previous}, submitted: {new_mileage}).",
            field="mileage",
        )
    if new_mileage - previous > LARGE_MILEAGE_INCREASE:
        return {
            "mileage": new_mileage,
            "mileage_flagged": True,
            "mileage_flag_reason": LARGE_INCREASE_REASON,
        }
    if new_mileage > previous:
        return {"mileage": new_mileage, "mileage_flagged": False, "mileage_flag_reason": None}
    return {"mileage": new_mileage}
