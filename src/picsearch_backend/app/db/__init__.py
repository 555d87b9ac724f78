# src/picsearch_backend/app/db/__init__.py
# ORM rows are imported from .models directly; only the engine handle is exported here.
from .session import Base, Database

__all__ = ["Base", "Database"]
