from datetime import datetime

from pydantic import BaseModel, ConfigDict


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(_Out):
    id: int
    name: str
    email: str
    is_admin: bool
    active: bool
    deleted_at: datetime | None = None
    created_at: datetime


class StateOut(_Out):
    id: int
    name: str
    created_at: datetime


class CityOut(_Out):
    id: int
    name: str
    state_id: int


class LocationOut(_Out):
    id: int
    name: str
    address: str
    phone_number: str
    city_id: int
    user_id: int
    deleted_at: datetime | None = None


class CarOut(_Out):
    id: int
    location_id: int
    brand: str
    model: str
    year: int
    price_by_day: float
    registration_number: str
    available: bool
    fuel_type: str | None = None
    transmission: str | None = None
    seats: int | None = None
    image_url: str
    mileage: int | None = None
    features: list[str] = []


class ReservationOut(_Out):
    id: int
    car_id: int
    user_id: int
    start_date: datetime
    end_date: datetime
    status: str
    total_price: float


class DeleteResult(BaseModel):
    deleted: dict[str, int]


class BulkImportResult(BaseModel):
    inserted: int
    duplicates: int
    duplicates_list: list[str]
    rejected: list[dict]


class AvailabilityOut(BaseModel):
    car_id: int
    available: bool
