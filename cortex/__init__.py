"""Chat-model inference providers, provider registry, token estimates and configuration."""

__version__ = "0.1.0"