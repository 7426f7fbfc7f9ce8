from .store import CursorDocument, CursorStore

__all__ = ["CursorDocument", "CursorStore"]
