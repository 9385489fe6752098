"""HTTP surface: versioned blueprints mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Blueprint, Flask


def mount(app: Flask, prefix: str, entries: Iterable[tuple[Blueprint, str]]) -> None:
    """Register ``(blueprint, relative_prefix)`` pairs below ``prefix``.

    An empty relative prefix mounts the blueprint at ``prefix`` itself, e.g.
    ``(health_bp, "")`` under ``/api/v1`` serves ``/api/v1/health``.
    """
    root = "/" + prefix.strip("/")
    for bp, rel in entries:
        rel = rel.strip("/")
        app.register_blueprint(bp, url_prefix=f"{root}/{rel}" if rel else root)


def init_app(app: Flask) -> None:
    """Install the identity reset hook and mount every API version."""
    from authgate.api.deps import reset_identity
    from authgate.api.v1 import API_VERSION, REGISTRY

    app.before_request(reset_identity)
    base = app.config.get("API_BASE_PREFIX", "/api").rstrip("/")
    mount(app, f"{base}/{API_VERSION}", REGISTRY)


__all__ = ["init_app", "mount"]
