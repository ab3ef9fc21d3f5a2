"""Seahorse: a retrieval-augmented chat agent over registry provider data."""

__version__ = "1.0.0"
