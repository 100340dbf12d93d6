"""HTTP API package."""

from cashbook.api.app import create_app, run

__all__ = ["create_app", "run"]
