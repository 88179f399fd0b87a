"""Command-line reports over the curve catalog: freshness health and batch CSV exports."""
