from . import appointments, availability, masters

__all__ = ["appointments", "availability", "masters"]
