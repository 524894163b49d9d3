"""Documents module - lifecycle service, API schemas and routes."""
