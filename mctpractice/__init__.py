"""MCT Practice: timed guided-practice session engine."""

__version__ = "0.1.0"
