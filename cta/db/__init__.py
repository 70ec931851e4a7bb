from .manager import DatabaseManager
