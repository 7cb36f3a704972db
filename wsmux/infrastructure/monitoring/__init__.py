"""Logging setup and request error logs."""
