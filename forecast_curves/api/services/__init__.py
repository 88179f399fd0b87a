# This file marks the services package.
# Services combine the repository with the curve engines so routers stay thin.
