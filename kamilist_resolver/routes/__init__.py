from .resolve_api import resolve_bp

__all__ = ["resolve_bp"]
