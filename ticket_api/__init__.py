"""
Backend package for the ticket tracking API.

This package provides a FastAPI application with a document store
abstraction (in-memory or SQLAlchemy-backed) holding tickets with their
embedded steps and notes.
"""
