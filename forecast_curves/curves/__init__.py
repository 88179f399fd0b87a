"""
Curve engines: selection, pivot, aggregation, freshness, vintage, and overlay.
Every function here is pure and works on already-fetched records or frames.
"""
