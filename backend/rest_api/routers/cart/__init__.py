"""
Cart router - /api/cart/*
"""

from .routes import router

__all__ = ["router"]
