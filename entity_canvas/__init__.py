"""Entity Canvas - lay out project entities on a canvas."""

__version__ = "0.1.0"
