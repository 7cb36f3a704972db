"""Domain Events emitted during a request's lifecycle."""
