"""wsmux: bounded-concurrency HTTP request multiplexer and Weather Source API client."""

__version__ = "2.0.0"
