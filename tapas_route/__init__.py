"""Location-gated voting for tapas route events."""

__version__ = '1.0.0'
