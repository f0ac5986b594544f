"""In-memory pet store and bearer-token things service as WSGI applications, with API generator configuration handling."""

__version__ = "0.1.0"

__all__ = ["__version__"]