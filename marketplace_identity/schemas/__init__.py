"""Request bodies accepted by the HTTP API."""
