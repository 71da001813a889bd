"""ASGI entrypoint for the earnings tracker API."""

from earnings_tracker.api.app import create_app
from earnings_tracker.containers import build_container

app = create_app(build_container())
