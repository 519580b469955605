"""FastAPI application for the Token Health API."""
