"""Database infrastructure: declarative base, column types and engine management."""
