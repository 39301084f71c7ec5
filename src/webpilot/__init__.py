"""WebPilot core: a local-model assistant for browser automation."""

__version__ = "0.1.0"
