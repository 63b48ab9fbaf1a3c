"""HTTP job API."""

from vtp.server.app import create_app

__all__ = ["create_app"]
