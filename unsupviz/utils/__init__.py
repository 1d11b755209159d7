"""Geometry, randomness and point-set helpers."""
