"""Owner settings module - company identity, branding and preferences."""
