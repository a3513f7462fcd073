"""ProtoForge web dashboard (FastAPI + server-sent events)."""

from protoforge.web.server import create_app, serve

__all__ = ["create_app", "serve"]
