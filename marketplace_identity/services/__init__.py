"""
High-level use cases for the identity API.

Each service orchestrates the credential store, token and OTP primitives to
implement one flow (signup, verification, login, refresh, password reset).
Routers call these services instead of touching the store directly.
"""
