"""A WSGI application exposing the pet store over HTTP with JSON bodies."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Callable
from urllib.parse import parse_qs

from .petstore import NewPet, PetError, PetNotFound, PetStore

JSON_CONTENT_TYPE = "application/json"

_PET_PATH = re.compile(r"^/pets/(?P<id>[^/]+)$")
_INTEGER = re.compile(r"^-?\d+$")

_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1

QueryArg = str | Mapping[str, Any] | None


@dataclass(frozen=True)
class Response:
    """An HTTP response produced by the application."""

    status: int
    body: bytes = b""
    headers: tuple[tuple[str, str], ...] = ()

    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None."""
        if not self.body:
            return None
        return json.loads(self.body)


def _json_response(status: HTTPStatus, data: Any) -> Response:
    body = json.dumps(data).encode("utf-8") + b"\n"
    return Response(
        status=status.value,
        body=body,
        headers=(("Content-Type", JSON_CONTENT_TYPE),),
    )


def _error(status: HTTPStatus, message: str) -> Response:
    return _json_response(status, PetError(code=status.value, message=message).to_dict())


def _method_not_allowed(allowed: Iterable[str]) -> Response:
    response = _error(HTTPStatus.METHOD_NOT_ALLOWED, "method not allowed")
    return Response(
        status=response.status,
        body=response.body,
        headers=response.headers + (("Allow", ", ".join(allowed)),),
    )


def _parse_query(query: QueryArg) -> dict[str, list[str]]:
    if query is None:
        return {}
    if isinstance(query, str):
        return parse_qs(query.lstrip("?"), keep_blank_values=True)
    parsed: dict[str, list[str]] = {}
    for key, value in query.items():
        if isinstance(value, str):
            parsed[key] = [value]
        else:
            parsed[key] = [str(item) for item in value]
    return parsed


def _parse_int(text: str, name: str, low: int, high: int) -> int:
    if not _INTEGER.match(text):
        raise ValueError(f"parameter {name!r}: {text!r} is not an integer")
    value = int(text)
    if not low <= value <= high:
        raise ValueError(f"parameter {name!r}: {value} is out of range")
    return value


class PetStoreApp:
    """Routes pet store requests to a :class:`PetStore`.

    In strict mode a successful ``POST /pets`` answers 200, as the strict
    handler does; otherwise it answers 201 Created.
    """

    def __init__(self, store: PetStore | None = None, strict: bool = False) -> None:
        self.store = store if store is not None else PetStore()
        self.strict = strict

    def handle(
        self,
        method: str,
        path: str,
        query: QueryArg = None,
        body: bytes | str = b"",
    ) -> Response:
        """Serve one request and return its response."""
        method = method.upper()
        try:
            params = _parse_query(query)
        except ValueError as exc:
            return _error(HTTPStatus.BAD_REQUEST, str(exc))

        if path == "/pets":
            if method == "GET":
                return self._find_pets(params)
            if method == "POST":
                return self._add_pet(body)
            return _method_not_allowed(("GET", "POST"))

        match = _PET_PATH.match(path)
        if match is None:
            return _error(HTTPStatus.NOT_FOUND, f"no matching operation was found for {path}")
        if method not in ("GET", "DELETE"):
            return _method_not_allowed(("GET", "DELETE"))
        try:
            pet_id = _parse_int(match.group("id"), "id", _INT64_MIN, _INT64_MAX)
        except ValueError as exc:
            return _error(HTTPStatus.BAD_REQUEST, str(exc))
        if method == "GET":
            return self._find_pet_by_id(pet_id)
        return self._delete_pet(pet_id)

    def _find_pets(self, params: dict[str, list[str]]) -> Response:
        tags = params.get("tags")
        limit: int | None = None
        limits = params.get("limit")
        if limits:
            try:
                limit = _parse_int(limits[0], "limit", _INT32_MIN, _INT32_MAX)
            except ValueError as exc:
                return _error(HTTPStatus.BAD_REQUEST, str(exc))
        pets = self.store.find_pets(tags, limit)
        return _json_response(HTTPStatus.OK, [pet.to_dict() for pet in pets])

    def _add_pet(self, body: bytes | str) -> Response:
        try:
            data = json.loads(body) if body else None
            new_pet = NewPet.from_dict(data)
            if not isinstance(data, Mapping) or "name" not in data:
                raise ValueError("property 'name' is missing")
        except ValueError:
            return _error(HTTPStatus.BAD_REQUEST, "Invalid format for NewPet")
        pet = self.store.add_pet(new_pet)
        status = HTTPStatus.OK if self.strict else HTTPStatus.CREATED
        return _json_response(status, pet.to_dict())

    def _find_pet_by_id(self, pet_id: int) -> Response:
        try:
            pet = self.store.find_pet_by_id(pet_id)
        except PetNotFound as exc:
            return _json_response(HTTPStatus.NOT_FOUND, exc.error.to_dict())
        return _json_response(HTTPStatus.OK, pet.to_dict())

    def _delete_pet(self, pet_id: int) -> Response:
        try:
            self.store.delete_pet(pet_id)
        except PetNotFound as exc:
            return _json_response(HTTPStatus.NOT_FOUND, exc.error.to_dict())
        return Response(status=HTTPStatus.NO_CONTENT.value)

    def __call__(
        self,
        environ: Mapping[str, Any],
        start_response: Callable[..., Any],
    ) -> list[bytes]:
        """WSGI entry point."""
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""
        response = self.handle(
            environ.get("REQUEST_METHOD", "GET"),
            environ.get("PATH_INFO", "/") or "/",
            environ.get("QUERY_STRING", ""),
            body,
        )
        status = HTTPStatus(response.status)
        headers = list(response.headers)
        headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{status.value} {status.phrase}", headers)
        return [response.body]