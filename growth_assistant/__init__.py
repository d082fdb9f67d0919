"""Conversational business growth assistant.

``create_app`` imports the FastAPI factory lazily so that the services and
models can be used without building the web app.
"""

__version__ = "0.1.0"


def create_app():
    from .main import create_app as _create_app

    return _create_app()


__all__ = ["__version__", "create_app"]
