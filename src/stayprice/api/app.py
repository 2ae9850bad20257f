"""ASGI entry point: ``uvicorn stayprice.api.app:app``."""

from .factory import create_app

app = create_app()
