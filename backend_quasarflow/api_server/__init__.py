"""HTTP API: FastAPI application, middleware pipeline, routers."""
