"""Async task dispatch and centralized error translation for a FastAPI service."""
