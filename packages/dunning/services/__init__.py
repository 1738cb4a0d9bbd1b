"""Dunning services."""
