"""Core Application Layer: the request multiplexer and the API request builders
layered on top of it.
"""
