"""Relational persistence for curve definitions, instances, and data points."""
