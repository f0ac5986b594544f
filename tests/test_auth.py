import io
import json

import pytest

from specserve.auth import (
    AuthError,
    ClaimsInvalid,
    InvalidAuthHeader,
    NoAuthHeader,
    Thing,
    ThingServer,
    ThingsApp,
    authenticate,
    check_token_claims,
    get_claims_from_token,
    get_jws_from_header,
)

READER_JWS = "token"
WRITER_JWS = "secret"


class FakeValidator:
    """Accepts a fixed set of tokens and returns their claims."""

    def __init__(self):
        self.tokens = {
            READER_JWS: {},
            WRITER_JWS: {"perms": ["things:w"]},
        }

    def validate_jws(self, jws):
        try:
            return self.tokens[jws]
        except KeyError:
            raise ValueError("signature invalid") from None


@pytest.fixture
def app():
    return ThingsApp(ThingServer(), FakeValidator())


def _bearer(jws):
    return {"Authorization": f"Bearer {jws}", "Accept": "application/json"}


def test_get_jws_from_header():
    assert get_jws_from_header("Bearer token") == "token"


@pytest.mark.parametrize("value", [None, ""])
def test_missing_header(value):
    with pytest.raises(NoAuthHeader) as exc:
        get_jws_from_header(value)
    assert str(exc.value) == "Authorization header is missing"


def test_malformed_header():
    with pytest.raises(InvalidAuthHeader) as exc:
        get_jws_from_header("Basic placeholder")
    assert str(exc.value) == "Authorization header is malformed"


def test_claims_absent_means_empty():
    assert get_claims_from_token({}) == []


def test_claims_read_from_perms():
    assert get_claims_from_token({"perms": ["a", "b"]}) == ["a", "b"]


def test_claims_wrong_type():
    with pytest.raises(AuthError, match="'perms' claim is unexpected type"):
        get_claims_from_token({"perms": "things:w"})


def test_claims_item_not_string():
    with pytest.raises(AuthError, match=r"perms\[1\] is not a string"):
        get_claims_from_token({"perms": ["ok", 5]})


def test_check_token_claims_missing_scope():
    with pytest.raises(ClaimsInvalid):
        check_token_claims(["things:w"], {"perms": ["other"]})


def test_check_token_claims_all_present():
    token = {"perms": ["things:w", "other"]}
    check_token_claims(["things:w"], token)
    assert get_claims_from_token(token) == ["things:w", "other"]


def test_authenticate_wrong_scheme():
    with pytest.raises(AuthError, match="security scheme Other != 'BearerAuth'"):
        authenticate(FakeValidator(), "Other", "Bearer token", [])


def test_authenticate_wraps_header_error():
    with pytest.raises(AuthError) as exc:
        authenticate(FakeValidator(), "BearerAuth", None, [])
    assert isinstance(exc.value.__cause__, NoAuthHeader)
    assert str(exc.value).startswith("getting jws:")


def test_authenticate_wraps_validator_error():
    with pytest.raises(AuthError, match="validating JWS: signature invalid"):
        authenticate(FakeValidator(), "BearerAuth", "Bearer placeholder", [])


def test_authenticate_reader_lacks_write_scope():
    with pytest.raises(AuthError) as exc:
        authenticate(FakeValidator(), "BearerAuth", "Bearer token", ["things:w"])
    assert isinstance(exc.value.__cause__, ClaimsInvalid)


def test_authenticate_returns_claims():
    claims = authenticate(FakeValidator(), "BearerAuth", "Bearer secret", ["things:w"])
    assert claims == {"perms": ["things:w"]}


def test_thing_server_sequential_ids():
    server = ThingServer()
    assert server.add_thing(Thing(name="a")) == {"id": 0, "name": "a"}
    assert server.add_thing(Thing(name="b")) == {"id": 1, "name": "b"}
    assert server.list_things() == [{"id": 0, "name": "a"}, {"id": 1, "name": "b"}]


def test_api(app):
    response = app.handle("GET", "/things")
    assert response.status == 403

    response = app.handle(
        "POST", "/things", _bearer(WRITER_JWS), json.dumps({"name": "Thing 1"})
    )
    assert response.status == 201
    assert response.json() == {"id": 0, "name": "Thing 1"}

    response = app.handle(
        "POST", "/things", _bearer(READER_JWS), json.dumps({"name": "Thing 2"})
    )
    assert response.status == 403

    for jws in (READER_JWS, WRITER_JWS):
        response = app.handle("GET", "/things", _bearer(jws))
        assert response.status == 200
        assert response.json() == [{"id": 0, "name": "Thing 1"}]


def test_bad_body_is_rejected(app):
    response = app.handle("POST", "/things", _bearer(WRITER_JWS), b"not json")
    assert response.status == 400
    assert response.json() == {"code": 400, "message": "could not bind request body"}


def test_unknown_path(app):
    assert app.handle("GET", "/nothing", _bearer(READER_JWS)).status == 404


def test_wsgi_entry_point(app):
    body = json.dumps({"name": "Thing 1"}).encode("utf-8")
    environ = {
        "REQUEST_METHOD": "POST",
        "PATH_INFO": "/things",
        "CONTENT_LENGTH": str(len(body)),
        "HTTP_AUTHORIZATION": "Bearer secret",
        "wsgi.input": io.BytesIO(body),
    }
    seen = {}

    def start_response(status, headers):
        seen["status"] = status
        seen["headers"] = dict(headers)

    chunks = app(environ, start_response)
    assert seen["status"] == "201 Created"
    assert json.loads(b"".join(chunks)) == {"id": 0, "name": "Thing 1"}
    assert seen["headers"]["Content-Length"] == str(len(b"".join(chunks)))