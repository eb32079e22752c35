"""Vote store service: FastAPI app over a PostgreSQL record store."""
