"""
Package marker for shared helpers under `forecast_curves.common`.
Settings, logging, and engine construction live here so domain modules stay focused on curve logic.
"""
