# This file marks the API package for the curve catalog HTTP surface.
# Routers, services, and schemas live in subpackages; `app.create_app` wires them together.
