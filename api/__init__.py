"""FastAPI routers for the Feature Router admin service."""
