"""Request payload shapes for entity writes.

These only check shape and ranges. Canonical forms, uniqueness and
references are handled by the services after a payload passes here.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from rental_core.db.models import DEFAULT_CAR_IMAGE

FuelType = Literal["petrol", "diesel", "electric", "hybrid", "other"]
Transmission = Literal["manual", "automatic", "semi-automatic"]


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class _CarChecks(_Payload):
    @field_validator("year", check_fields=False)
    @classmethod
    def check_year(cls, value: int | None) -> int | None:
        if value is None:
            return value
        if value < 1900:
            raise ValueError("Invalid year")
        if value > datetime.now().year + 1:
            raise ValueError("Year cannot be in the future")
        return value

    @field_validator("image_url", check_fields=False)
    @classmethod
    def check_image_url(cls, value: str | None) -> str | None:
        # Relative upload paths or absolute URLs.
        if value is None or value.startswith("/images/"):
            return value
        if value.startswith(("http://", "https://")):
            return value
        raise ValueError("Invalid image URL format")


class UserCreate(_Payload):
    name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password_hash: str = Field(min_length=1)
    is_admin: bool = False
    active: bool = True


class UserUpdate(_Payload):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    email: EmailStr | None = None
    password_hash: str | None = Field(default=None, min_length=1)
    is_admin: bool | None = None
    active: bool | None = None


class StateCreate(_Payload):
    name: str = Field(min_length=2, max_length=50)


class StateUpdate(_Payload):
    name: str | None = Field(default=None, min_length=2, max_length=50)


class CityCreate(_Payload):
    name: str = Field(min_length=2, max_length=100)
    state_id: int


class CityUpdate(_Payload):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    state_id: int | None = None


class LocationCreate(_Payload):
    name: str = Field(min_length=2, max_length=100)
    address: str = Field(min_length=1, max_length=200)
    phone_number: str
    city_id: int
    user_id: int


class LocationUpdate(_Payload):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    address: str | None = Field(default=None, min_length=1, max_length=200)
    phone_number: str | None = None
    city_id: int | None = None
    user_id: int | None = None


class CarCreate(_CarChecks):
    location_id: int
    brand: str = Field(min_length=1, max_length=50)
    model: str = Field(min_length=1, max_length=50)
    year: int
    price_by_day: float = Field(ge=1)
    registration_number: str
    available: bool = True
    fuel_type: FuelType | None = None
    transmission: Transmission | None = None
    seats: int | None = Field(default=None, ge=1, le=16)
    image_url: str = DEFAULT_CAR_IMAGE
    mileage: int | None = Field(default=None, ge=0)
    features: list[str] = Field(default_factory=list)


class CarUpdate(_CarChecks):
    location_id: int | None = None
    brand: str | None = Field(default=None, min_length=1, max_length=50)
    model: str | None = Field(default=None, min_length=1, max_length=50)
    year: int | None = None
    price_by_day: float | None = Field(default=None, ge=1)
    registration_number: str | None = None
    available: bool | None = None
    fuel_type: FuelType | None = None
    transmission: Transmission | None = None
    seats: int | None = Field(default=None, ge=1, le=16)
    image_url: str | None = None
    mileage: int | None = Field(default=None, ge=0)
    features: list[str] | None = None


class ReservationCreate(_Payload):
    car_id: int
    user_id: int
    start_date: datetime
    end_date: datetime


class ReservationUpdate(_Payload):
    status: str = Field(min_length=1)
