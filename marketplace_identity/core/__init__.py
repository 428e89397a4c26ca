"""
Core utilities shared across the identity API.

Configuration, the error taxonomy, logging setup, password hashing, the
e-mail notifier and the request gateway live here so that services never
reach for os.environ or FastAPI internals directly.
"""
