from typing import Optional

from pydantic import BaseModel, Field


class ListingFields(BaseModel):
    """
    Listing attributes shared by create and edit payloads.

    Everything is optional at this layer; which fields a vehicle type
    requires is checked by the listing service so the error names the field.
    """

    title: Optional[str] = Field(None, description="Listing headline")
    description: Optional[str] = None
    make: Optional[str] = Field(None, description="Manufacturer, e.g. Toyota")
    model: Optional[str] = Field(None, description="Model name, e.g. Land Cruiser")
    variant: Optional[str] = None
    year: Optional[int] = None
    condition: Optional[str] = Field(None, description="New or Used")
    price: Optional[float] = None
    color_exterior: Optional[str] = None
    color_interior: Optional[str] = None
    fuel_type: Optional[str] = None
    engine_capacity: Optional[float] = None
    transmission: Optional[str] = None
    mileage: Optional[int] = None
    regional_spec: Optional[str] = None
    body_type: Optional[str] = None
    city: Optional[str] = None
    location: Optional[str] = None
    car_doors: Optional[int] = None
    contact_number: Optional[str] = None
    warranty: Optional[str] = None
    number_of_cylinders: Optional[int] = None
    owner_type: Optional[str] = None
    horsepower: Optional[int] = None
    battery_range: Optional[float] = None
    motor_power: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    images: Optional[list[str]] = Field(None, description="1-10 hosted image URLs")
    features: Optional[list[str]] = None


class ListingCreatePayload(ListingFields):
    vehicle_type: Optional[str] = Field(None, description="Car, Bus, Truck, Van, Bike or E-bike")


class ListingUpdatePayload(ListingFields):
    """
    Partial update. Only fields present in the request body are applied.

    ``status`` is accepted only so the service can reject it with a clear
    message; lifecycle changes go through the dedicated actions.
    """

    status: Optional[str] = None


class MarkSoldPayload(BaseModel):
    actual_sale_price: Optional[float] = Field(None, description="Final agreed price (optional)")


class BoostPayload(BaseModel):
    days: int = Field(..., description="Boost duration in days")
    priority: int = Field(0, description="Placement priority, 0-100")
