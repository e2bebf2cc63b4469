"""Persistence: SQLAlchemy engine, ORM models, and the durable cache store."""
