"""CV intake backend: résumé submission processing service."""

__version__ = "1.0.0"
