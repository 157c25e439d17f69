"""PG Dash access core: authentication, sessions and role-based access control."""

__version__ = "1.0.0"
