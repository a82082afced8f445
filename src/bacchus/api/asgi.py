"""ASGI entrypoint for the Bacchus API."""

from bacchus.api.app import create_app
from bacchus.containers import build_container

app = create_app(build_container())
