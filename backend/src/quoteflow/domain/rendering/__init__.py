"""Rendering domain module - document + template into a presentation artifact."""
