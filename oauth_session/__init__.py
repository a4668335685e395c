"""OAuth2 session coordinator: sign-in, refresh, online validation and sign-out."""

__version__ = "1.0.0"
