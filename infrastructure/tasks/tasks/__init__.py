"""Task modules grouped by domain; importing registers them."""
from . import payments  # noqa: F401

__all__ = ["payments"]
