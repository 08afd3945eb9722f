"""Authentication primitives.

Learn: Two ways to become an authenticated user:
1. Email + password + role → JWT access/refresh tokens
2. Legacy phone + role → the same token pair, trusting the phone lookup

Both hand back the same kind of tokens, and profile routes resolve the
access token into a CurrentIdentity.
"""
