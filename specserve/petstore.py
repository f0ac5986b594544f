"""An in-memory pet store: the domain logic behind the pet store API."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

FIRST_PET_ID = 1000


def _require(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int and isinstance(value, bool):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be {kind.__name__}, got {value!r}")
    return value


def _as_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object, got {data!r}")
    return data


@dataclass(frozen=True)
class Pet:
    """A stored pet with its identifier."""

    id: int = 0
    name: str = ""
    tag: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; ``tag`` is left out when unset."""
        out: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.tag is not None:
            out["tag"] = self.tag
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Pet:
        """Build a pet from its JSON form; missing fields take their zero values."""
        data = _as_mapping(data, "Pet")
        return cls(
            id=_require(data, "id", int, 0),
            name=_require(data, "name", str, ""),
            tag=_require(data, "tag", str, None),
        )


@dataclass(frozen=True)
class NewPet:
    """A pet to be added; the store assigns the identifier."""

    name: str = ""
    tag: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> NewPet:
        """Build a new pet from its JSON form, raising ValueError on a bad shape."""
        data = _as_mapping(data, "NewPet")
        return cls(
            name=_require(data, "name", str, ""),
            tag=_require(data, "tag", str, None),
        )


@dataclass(frozen=True)
class PetError:
    """The error body returned by the API."""

    code: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the error."""
        return {"code": self.code, "message": self.message}


class PetNotFound(LookupError):
    """Raised when no pet has the requested identifier."""

    def __init__(self, pet_id: int) -> None:
        self.pet_id = pet_id
        self.error = PetError(
            code=HTTPStatus.NOT_FOUND.value,
            message=f"Could not find pet with ID {pet_id}",
        )
        super().__init__(self.error.message)


@dataclass
class PetStore:
    """Thread-safe in-memory storage of pets keyed by identifier."""

    pets: dict[int, Pet] = field(default_factory=dict)
    next_id: int = FIRST_PET_ID
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def find_pets(
        self, tags: Iterable[str] | None = None, limit: int | None = None
    ) -> list[Pet]:
        """Return pets, filtered by tag when tags are given, stopping at ``limit``."""
        wanted = list(tags) if tags is not None else None
        result: list[Pet] = []
        with self._lock:
            for pet in self.pets.values():
                if wanted is not None:
                    result.extend(
                        pet for tag in wanted if pet.tag is not None and pet.tag == tag
                    )
                else:
                    result.append(pet)
                if limit is not None and len(result) >= int(limit):
                    break
        return result

    def add_pet(self, new_pet: NewPet) -> Pet:
        """Store a new pet under the next free identifier and return it."""
        with self._lock:
            pet = Pet(id=self.next_id, name=new_pet.name, tag=new_pet.tag)
            self.next_id += 1
            self.pets[pet.id] = pet
        return pet

    def find_pet_by_id(self, pet_id: int) -> Pet:
        """Return the pet with ``pet_id`` or raise PetNotFound."""
        with self._lock:
            try:
                return self.pets[pet_id]
            except KeyError:
                raise PetNotFound(pet_id) from None

    def delete_pet(self, pet_id: int) -> None:
        """Remove the pet with ``pet_id`` or raise PetNotFound."""
        with self._lock:
            if pet_id not in self.pets:
                raise PetNotFound(pet_id)
            del self.pets[pet_id]