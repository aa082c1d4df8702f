"""HTTP API (FastAPI): chat translation, table data and analytics endpoints."""
