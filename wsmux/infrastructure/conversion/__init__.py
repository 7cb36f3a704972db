"""Unit conversion for API responses."""
