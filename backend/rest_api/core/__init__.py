"""
Application wiring: lifespan, middlewares, CORS and shared dependencies.
"""
