"""
FastAPI routers grouped by domain.

Each module exposes an APIRouter included by ``marketplace_identity.app``.
"""
