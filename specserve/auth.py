"""Bearer token authentication and a small API of named things guarded by it."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Protocol

from .petstore_http import JSON_CONTENT_TYPE, Response

PERMISSIONS_CLAIM = "perms"
BEARER_SCHEME = "BearerAuth"
WRITE_SCOPE = "things:w"
_BEARER_PREFIX = "Bearer "


class AuthError(Exception):
    """Raised when a request cannot be authenticated or authorised."""


class NoAuthHeader(AuthError):
    """The Authorization header is missing."""

    def __init__(self) -> None:
        super().__init__("Authorization header is missing")


class InvalidAuthHeader(AuthError):
    """The Authorization header is not of the form ``Bearer <jws>``."""

    def __init__(self) -> None:
        super().__init__("Authorization header is malformed")


class ClaimsInvalid(AuthError):
    """The token's claims do not cover the required scopes."""

    def __init__(self) -> None:
        super().__init__("Provided claims do not match expected scopes")


class JWSValidator(Protocol):
    """Checks a JWS string and returns the claims of its token."""

    def validate_jws(self, jws: str) -> Mapping[str, Any]: ...


def get_jws_from_header(authorization: str | None) -> str:
    """Extract the JWS from an ``Authorization: Bearer <jws>`` header value."""
    if not authorization:
        raise NoAuthHeader()
    if not authorization.startswith(_BEARER_PREFIX):
        raise InvalidAuthHeader()
    return authorization[len(_BEARER_PREFIX):]


def get_claims_from_token(token: Mapping[str, Any]) -> list[str]:
    """Return the permission claims of a token; none present means an empty list."""
    raw = token.get(PERMISSIONS_CLAIM)
    if PERMISSIONS_CLAIM not in token:
        return []
    if not isinstance(raw, list):
        raise AuthError(f"'{PERMISSIONS_CLAIM}' claim is unexpected type'")
    claims: list[str] = []
    for index, claim in enumerate(raw):
        if not isinstance(claim, str):
            raise AuthError(f"{PERMISSIONS_CLAIM}[{index}] is not a string")
        claims.append(claim)
    return claims


def check_token_claims(expected_claims: Iterable[str], token: Mapping[str, Any]) -> None:
    """Raise ClaimsInvalid unless every expected claim is present in the token."""
    try:
        claims = set(get_claims_from_token(token))
    except AuthError as exc:
        raise AuthError(f"getting claims from token: {exc}") from exc
    if any(expected not in claims for expected in expected_claims):
        raise ClaimsInvalid()


def authenticate(
    validator: JWSValidator,
    scheme_name: str,
    authorization: str | None,
    scopes: Iterable[str],
) -> Mapping[str, Any]:
    """Validate the bearer token and check its claims; return the token's claims."""
    if scheme_name != BEARER_SCHEME:
        raise AuthError(f"security scheme {scheme_name} != '{BEARER_SCHEME}'")
    try:
        jws = get_jws_from_header(authorization)
    except AuthError as exc:
        raise AuthError(f"getting jws: {exc}") from exc
    try:
        token = validator.validate_jws(jws)
    except Exception as exc:
        raise AuthError(f"validating JWS: {exc}") from exc
    try:
        check_token_claims(scopes, token)
    except AuthError as exc:
        raise AuthError(f"token claims don't match: {exc}") from exc
    return token


@dataclass(frozen=True)
class Thing:
    """A named thing."""

    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Thing:
        """Build a thing from its JSON form, raising ValueError on a bad shape."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Thing must be a JSON object, got {data!r}")
        name = data.get("name", "")
        if name is None:
            name = ""
        if not isinstance(name, str):
            raise ValueError(f"field 'name' must be str, got {name!r}")
        return cls(name=name)


@dataclass
class ThingServer:
    """Thread-safe in-memory storage of things with sequential identifiers."""

    things: dict[int, Thing] = field(default_factory=dict)
    last_id: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def list_things(self) -> list[dict[str, Any]]:
        """Return all things with their identifiers, ordered by identifier."""
        with self._lock:
            return [
                {"id": key, "name": self.things[key].name} for key in sorted(self.things)
            ]

    def add_thing(self, thing: Thing) -> dict[str, Any]:
        """Store a thing under the next identifier and return it with that identifier."""
        with self._lock:
            thing_id = self.last_id
            self.things[thing_id] = thing
            self.last_id += 1
        return {"id": thing_id, "name": thing.name}


def _json(status: HTTPStatus, data: Any) -> Response:
    return Response(
        status=status.value,
        body=json.dumps(data).encode("utf-8") + b"\n",
        headers=(("Content-Type", JSON_CONTENT_TYPE),),
    )


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


class ThingsApp:
    """Serves ``/things``: listing needs a valid token, adding needs ``things:w``."""

    def __init__(self, server: ThingServer | None, validator: JWSValidator) -> None:
        self.server = server if server is not None else ThingServer()
        self.validator = validator
        self.last_claims: Mapping[str, Any] | None = None

    def handle(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str = b"",
    ) -> Response:
        """Serve one request and return its response."""
        method = method.upper()
        if path != "/things":
            return _json(HTTPStatus.NOT_FOUND, {"message": "Not Found"})
        if method not in ("GET", "POST"):
            response = _json(HTTPStatus.METHOD_NOT_ALLOWED, {"message": "Method Not Allowed"})
            return Response(
                status=response.status,
                body=response.body,
                headers=response.headers + (("Allow", "GET, POST"),),
            )

        scopes = () if method == "GET" else (WRITE_SCOPE,)
        try:
            self.last_claims = authenticate(
                self.validator, BEARER_SCHEME, _header(headers, "Authorization"), scopes
            )
        except AuthError as exc:
            return _json(HTTPStatus.FORBIDDEN, {"message": str(exc)})

        if method == "GET":
            return _json(HTTPStatus.OK, self.server.list_things())

        try:
            thing = Thing.from_dict(json.loads(body))
        except ValueError:
            code = HTTPStatus.BAD_REQUEST
            return _json(code, {"code": code.value, "message": "could not bind request body"})
        return _json(HTTPStatus.CREATED, self.server.add_thing(thing))

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
        headers: dict[str, str] = {}
        if environ.get("HTTP_AUTHORIZATION") is not None:
            headers["Authorization"] = environ["HTTP_AUTHORIZATION"]
        response = self.handle(
            environ.get("REQUEST_METHOD", "GET"),
            environ.get("PATH_INFO", "/") or "/",
            headers,
            body,
        )
        status = HTTPStatus(response.status)
        out_headers = list(response.headers)
        out_headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{status.value} {status.phrase}", out_headers)
        return [response.body]