"""
路由目录
"""

from . import files, health, message, token, user

__all__ = ["files", "health", "message", "token", "user"]
