from .surreal_http import SurrealHttpClient, SurrealQueryError

__all__ = ["SurrealHttpClient", "SurrealQueryError"]
