[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "specserve"
version = "0.1.0"
description = "An in-memory pet store and a bearer-token guarded things service as WSGI applications, with API generator configuration handling"
requires-python = ">=3.10"
keywords = ["openapi", "wsgi", "petstore", "bearer", "configuration", "rest"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
specserve = "specserve.server:main"

[tool.hatch.build.targets.wheel]
packages = ["specserve"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
