"""
Discord login for the hosting portal.

Design goals:
- Discord OAuth2 authorization-code flow, server-side token exchange.
- Identity lives only in a signed, HttpOnly cookie (no server-side store).
- Configuration is loaded once and passed explicitly.
"""
