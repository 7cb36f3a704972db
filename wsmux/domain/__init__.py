"""Domain Layer: request lifecycle models, transport port and lifecycle events."""
