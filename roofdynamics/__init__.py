"""Roof Dynamics: address-to-roof-report analysis service."""

__version__ = "0.1.0"
