"""Authentication and authorization.

Two separate identities share the same JWT machinery:
1. Users (customers, admins) → email/password → access/refresh tokens
2. Restaurants → email/password → restaurant token (own secret)

Admin-only routes and the admin WebSocket check the `role` claim.
"""
