# MIME entity value objects

from .body import Body, FileBody, InCoreBody
from .entity import Entity, make_boundary
from .header import Header

__all__ = [
    "Body",
    "InCoreBody",
    "FileBody",
    "Entity",
    "Header",
    "make_boundary",
]
