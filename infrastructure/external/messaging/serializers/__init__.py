from .json import JsonSerializer

__all__ = ["JsonSerializer"]
