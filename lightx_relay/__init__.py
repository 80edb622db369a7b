"""LightX Relay - run LightX image tools on behalf of a client app."""

__version__ = "1.0.0"
