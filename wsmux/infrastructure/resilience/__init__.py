"""Request Resilience Implementations.

Contains the retry classification policy, the HTTP status text table and
the launch pacer used to ramp up connections.
Bounded Context: Request Resilience
"""
