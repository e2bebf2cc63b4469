"""ERP proxy cache service (FastAPI)."""
