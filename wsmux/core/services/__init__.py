"""Application services built on the request multiplexer."""
