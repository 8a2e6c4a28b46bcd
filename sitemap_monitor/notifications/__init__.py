"""Alert evaluation and delivery."""

from .alerts import AlertManager

__all__ = ["AlertManager"]
