"""Plain domain types and input rules, free of FastAPI and SQLAlchemy."""
