"""Read S-57 navigational charts and store their charts and features in PostGIS."""

__version__ = "1.0.0"
__all__ = ["__version__"]