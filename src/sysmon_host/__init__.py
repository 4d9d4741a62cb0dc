"""Native messaging host that serves system telemetry to a browser extension."""

__version__ = "0.3.0"
