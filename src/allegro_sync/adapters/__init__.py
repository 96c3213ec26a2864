"""Adapters implementing the ports (memory, SQLAlchemy, HTTP)."""
