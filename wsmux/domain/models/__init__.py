"""Domain models (value objects and entities) for multiplexed requests."""
