"""Economy Simulation Service - tick-driven agent economy."""

__version__ = "0.1.0"
