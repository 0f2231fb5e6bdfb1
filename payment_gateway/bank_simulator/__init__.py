"""Reference acquiring bank used in development and tests."""
from .app import app, create_app

__all__ = ["app", "create_app"]
