# sicenet/services/__init__.py
"""服务层模块"""

from .sicenet_service import SicenetService, get_sicenet_service

__all__ = ["SicenetService", "get_sicenet_service"]
