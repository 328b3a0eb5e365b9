# Post-decode redoers

from .base import Redoer
from .uu import DEFAULT_HORIZON, RedoUU, guess_type

__all__ = ["Redoer", "RedoUU", "DEFAULT_HORIZON", "guess_type"]
