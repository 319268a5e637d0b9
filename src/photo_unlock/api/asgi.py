"""ASGI entrypoint for the photo unlock API."""

from photo_unlock.api.app import create_app
from photo_unlock.containers import build_container

app = create_app(build_container())
