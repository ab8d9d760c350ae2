from app.services.adapters.base import BaseAdapter
from app.services.adapters.registry import get_adapter, is_api_backend

__all__ = ["BaseAdapter", "get_adapter", "is_api_backend"]
