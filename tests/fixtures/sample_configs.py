"""
Sample configuration documents used by config and application context tests.
"""

MINIMAL_CONFIG = {
    "provider": {
        "client_id": "cid",
        "device_authorization_url": "https://id.example.com/oauth/device",
        "token_url": "https://id.example.com/oauth/token",
    }
}

STRICT_CONFIG = {
    "provider": {
        "client_id": "cid",
        "client_secret": "secret",
        "device_authorization_url": "https://id.example.com/oauth/device",
        "token_url": "https://id.example.com/oauth/token",
        "introspection_url": "https://id.example.com/oauth/introspect",
        "revocation_url": "https://id.example.com/oauth/revoke",
        "scopes": ["openid", "profile"],
    },
    "session": {
        "credential_file": "state/credentials.json",
        "markers_file": "state/session_markers.json",
        "legacy_credential_file": "legacy.conf",
        "legacy_username": "alice",
        "request_options": [
            "refresh_if_needed",
            "reauthenticate_if_needed",
            "require_online_validation",
        ],
        "header_name": "Authorization",
    },
}
