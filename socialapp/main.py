"""Application entrypoint that delegates to the app factory."""

from socialapp.core.app_factory import create_app

app = create_app()
