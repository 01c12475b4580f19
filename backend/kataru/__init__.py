"""Kataru: asynchronous talking-avatar and promo-scene video generation."""

__version__ = "0.1.0"
