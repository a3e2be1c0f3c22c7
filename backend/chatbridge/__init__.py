"""HTTP and WebSocket bridge to a single messaging session."""

__version__ = "0.1.0"
