# specserve

`specserve` holds three things:

- an in-memory pet store (`specserve.petstore`) and a WSGI application that
  serves it as a JSON API (`specserve.petstore_http`), with a command to run it;
- a bearer-token guarded "things" service (`specserve.auth`);
- configuration handling for an API code generator (`specserve.config`):
  reading YAML configuration files in the current and the older layout,
  applying command-line overrides and choosing generation targets.

## Installation

```
pip install specserve
```

For running the tests:

```
pip install "specserve[test]"
pytest
```

## Running the pet store

```
specserve --port 8080
```

This serves the pet store with the standard library's WSGI server on all
interfaces at the given port (8080 when the option is left out). With
`--strict`, a successful pet creation answers `200` instead of `201`.

The service offers:

- `GET /pets`: list pets, optionally filtered by one or more `tags` query
  values and capped by a `limit` query value
- `POST /pets`: add a pet from a JSON body such as
  `{"name": "Spot", "tag": "TagOfSpot"}`; `name` is required, and a malformed
  body answers `400` with the message `Invalid format for NewPet`
- `GET /pets/{id}`: fetch one pet; `404` with an error body if it is unknown
- `DELETE /pets/{id}`: remove a pet; `204` on success, `404` if it is unknown

Error bodies have the form `{"code": 404, "message": "Could not find pet with ID 7"}`.
An identifier or limit that is not an integer answers `400`, an unknown path
`404`, and a method the path does not support `405`. New pets are numbered
from 1000 upwards.

## Using the store from Python

```python
from specserve.petstore import NewPet, PetNotFound, PetStore

store = PetStore()
pet = store.add_pet(NewPet.from_dict({"name": "Spot", "tag": "TagOfSpot"}))
print(pet.to_dict())          # {'id': 1000, 'name': 'Spot', 'tag': 'TagOfSpot'}

print(store.find_pets(["TagOfSpot"], None))

store.delete_pet(pet.id)
try:
    store.find_pet_by_id(pet.id)
except PetNotFound as exc:
    print(exc)                # Could not find pet with ID 1000
```

`PetStore` guards its data with a lock, so one store can serve several
threads.

## Serving through WSGI

`PetStoreApp` wraps a `PetStore` and can be handed to any WSGI server:

```python
from wsgiref.simple_server import make_server

from specserve.petstore import PetStore
from specserve.petstore_http import PetStoreApp

app = PetStoreApp(PetStore(), False)
make_server("0.0.0.0", 8080, app).serve_forever()
```

`specserve.server.make_server(port, store, strict)` builds the same server in
one call.

`PetStoreApp.handle(method, path, query, body)` runs a request without a
server and returns a `Response` with `status`, `body` and `headers`; its
`json()` method decodes the body:

```python
response = app.handle("POST", "/pets", None, b'{"name": "Spot"}')
print(response.status, response.json())
print(app.handle("GET", "/pets", "tags=Spot&limit=5").json())
```

## The authenticated things service

`specserve.auth.ThingsApp(server, validator)` serves `/things` from a
`ThingServer`. Each request must carry an `Authorization: Bearer <jws>`
header; the validator turns the JWS into the token's claims. Listing things
(`GET`) needs any valid token; adding one (`POST`, body `{"name": "..."}`)
needs a token whose `perms` claim includes `things:w`. Failures answer `403`,
a successful addition `201`, and things are numbered from 0.

```python
from specserve.auth import ThingsApp, ThingServer

class Validator:
    def validate_jws(self, jws):
        if jws != "token":
            raise ValueError("bad signature")
        return {"perms": ["things:w"]}

app = ThingsApp(ThingServer(), Validator())
headers = {"Authorization": "Bearer token"}
print(app.handle("POST", "/things", headers, b'{"name": "Thing 1"}').json())
print(app.handle("GET", "/things", headers).json())
```

The helpers can be used on their own: `get_jws_from_header` raises
`NoAuthHeader` or `InvalidAuthHeader`, `check_token_claims` raises
`ClaimsInvalid` when a scope is missing, and `authenticate` runs all steps.
All of these are `AuthError`s.

## Generator configuration

`specserve.config` reads and normalises generator configuration:

```python
from specserve.config import Configuration, generation_targets

config = Configuration.from_dict({"package": "api"})
generation_targets(config, ["types", "client", "chi-server"])
print(config.to_yaml())
```

Unknown targets, unknown keys and values of the wrong type raise
`ConfigError`. `detect_config_style` tells files in the older flat layout
apart from the current one (falling back to which flags were given),
`new_config_from_old_config` converts an older one, and
`load_configuration(CommandFlags(...))` brings a configuration file and
command flags together into one `Configuration`. `load_template_overrides`
reads a directory of template files keyed by relative path. When no package
name is set and an output file is, `detect_package_name` runs the external
`go list` command on the output directory; otherwise the name is derived
from the spec file name.

## What it does not do

- It does not generate any code: `specserve.config` only prepares the
  configuration, and there is no command that runs a generator.
- The pet store API does not validate requests against an API description
  document; only the checks listed above are made.
- `specserve.auth` does not issue, sign or verify tokens; a validator with a
  `validate_jws` method must be supplied, and there is no command that runs
  the things service.
- Data is kept in memory only and is lost when the process ends.