# Core package initialization
# Configuration, logging, locking and the infrastructure exceptions

from . import config, exceptions, locks

__all__ = [
    "config",
    "exceptions",
    "locks",
]
