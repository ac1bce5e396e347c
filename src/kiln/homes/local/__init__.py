from .home import LocalHome

__all__ = ["LocalHome"]
