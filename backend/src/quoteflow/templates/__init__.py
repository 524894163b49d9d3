"""Templates module - template CRUD service, API schemas and routes."""
