"""FastAPI read service over the replicated stores."""
