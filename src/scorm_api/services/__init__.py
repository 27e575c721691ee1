"""Domain services used by the route handlers."""
