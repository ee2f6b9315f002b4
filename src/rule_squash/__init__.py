"""Compile rule recipes into deduplicated assistant artifacts."""

__version__ = "0.1.0"
