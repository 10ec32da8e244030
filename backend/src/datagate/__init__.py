"""datagate - declarative data layer with access control and lifecycle hooks."""

__version__ = "0.1.0"
