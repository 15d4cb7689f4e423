"""API routers for the Tallr gateway."""
