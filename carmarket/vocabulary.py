"""Controlled vocabularies shared by listing validation and the query compiler."""

VEHICLE_TYPES = ("Car", "Bus", "Truck", "Van", "Bike", "E-bike")

CAR_BODY_TYPES = (
    "Roadster",
    "Cabriolet",
    "Super",
    "Hatchback",
    "Micro",
    "Station",
    "Sedan",
    "Muscle",
    "Sports",
    "Targa",
    "Convertible",
    "Coupe",
    "Hybrid",
    "SUV",
    "Pickup",
    "Van",
)
BUS_BODY_TYPES = (
    "School Bus",
    "Coach",
    "Mini Bus",
    "Double Decker",
    "Shuttle Bus",
    "Transit Bus",
)
TRUCK_BODY_TYPES = (
    "Flatbed",
    "Box Truck",
    "Dump Truck",
    "Tow Truck",
    "Cement Truck",
    "Refrigerated Truck",
    "Tanker Truck",
)

# Listing column -> allowed values
ENUM_FIELDS: dict[str, tuple[str, ...]] = {
    "condition": ("New", "Used"),
    "fuel_type": ("Petrol", "Diesel", "Hybrid", "Electric"),
    "transmission": ("Manual", "Automatic"),
    "regional_spec": ("GCC", "American", "Canadian", "European"),
    "body_type": CAR_BODY_TYPES + BUS_BODY_TYPES + TRUCK_BODY_TYPES,
    "owner_type": ("Owner", "Dealer", "Dealership"),
    "warranty": ("Yes", "No", "Doesn't Apply"),
    "vehicle_type": VEHICLE_TYPES,
}

# Fields OR'd together by free-text search
TEXT_SEARCH_FIELDS = ("make", "model", "variant", "title", "description", "city", "location")
