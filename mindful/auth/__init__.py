"""Authentication: JWT validation, roles and API keys."""
