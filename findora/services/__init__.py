# Services Module
from . import money

__all__ = ["money"]
