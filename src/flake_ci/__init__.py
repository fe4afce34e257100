"""Discover flake outputs and check a binary cache for them before CI builds."""

__all__ = ["__version__"]

__version__ = "0.1.0"
