# This file marks the routers package for API route modules.
# Route modules are grouped by concern: health, curve browsing, freshness, and uploads.
