"""HTTP surface for the caller API."""

from datagate.api.app import create_app

__all__ = ["create_app"]
