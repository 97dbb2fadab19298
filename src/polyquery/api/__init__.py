"""FastAPI application and routes.

The app should be imported directly from app module to avoid
import-time side effects:

    from polyquery.api.app import app
"""
