"""Static description of every entity type the core manages."""

from dataclasses import dataclass, field

from pydantic import BaseModel

from rental_core.core.domain_exceptions import ValidationError
from rental_core.db.models import Car, City, Location, Reservation, State, User
from rental_core.schemas import entities as payloads


@dataclass(frozen=True)
class EntitySpec:
    name: str
    model: type
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    # Foreign key field -> referenced entity type.
    references: dict[str, str] = field(default_factory=dict)
    # Each scope is the tuple of fields that must be unique together.
    unique_scopes: tuple[tuple[str, ...], ...] = ()
    soft_delete: bool = False

    @property
    def label(self) -> str:
        return self.name.capitalize()


ENTITY_SPECS: dict[str, EntitySpec] = {
    "user": EntitySpec(
        name="user",
        model=User,
        create_schema=payloads.UserCreate,
        update_schema=payloads.UserUpdate,
        unique_scopes=(("email",),),
        soft_delete=True,
    ),
    "state": EntitySpec(
        name="state",
        model=State,
        create_schema=payloads.StateCreate,
        update_schema=payloads.StateUpdate,
        unique_scopes=(("name",),),
    ),
    "city": EntitySpec(
        name="city",
        model=City,
        create_schema=payloads.CityCreate,
        update_schema=payloads.CityUpdate,
        references={"state_id": "state"},
        unique_scopes=(("state_id", "name"),),
    ),
    "location": EntitySpec(
        name="location",
        model=Location,
        create_schema=payloads.LocationCreate,
        update_schema=payloads.LocationUpdate,
        references={"city_id": "city", "user_id": "user"},
        soft_delete=True,
    ),
    "car": EntitySpec(
        name="car",
        model=Car,
        create_schema=payloads.CarCreate,
        update_schema=payloads.CarUpdate,
        references={"location_id": "location"},
        unique_scopes=(("registration_number",),),
    ),
    "reservation": EntitySpec(
        name="reservation",
        model=Reservation,
        create_schema=payloads.ReservationCreate,
        update_schema=payloads.ReservationUpdate,
        references={"car_id": "car", "user_id": "user"},
    ),
}


def get_spec(entity_type: str) -> EntitySpec:
    spec = ENTITY_SPECS.get(entity_type)
    if spec is None:
        raise ValidationError(f"Unknown entity type: {entity_type}")
    return spec
