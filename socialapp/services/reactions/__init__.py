"""Reaction service and grouped reaction lookups."""
