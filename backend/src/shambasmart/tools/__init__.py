from .knowledge_base import LocalDataSource

__all__ = ["LocalDataSource"]
