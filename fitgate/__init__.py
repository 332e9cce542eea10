"""Gym commerce, membership and check-in backend."""
