"""
FastAPI application for the AI mentor.

This provides HTTP endpoints for mentor conversations and lesson
document ingestion with proper database connection pooling.
"""

from api.app import app, get_app

__all__ = ["app", "get_app"]
