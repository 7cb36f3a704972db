"""Transport adapters implementing the multi-request HTTP contract."""
