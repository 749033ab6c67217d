"""HTTP 接口包。"""

from .app import create_app


__all__ = ["create_app"]
