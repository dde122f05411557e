"""SQLAlchemy models"""

from .base import Base, PortableJSONB
from .submission import Submission

__all__ = ["Base", "PortableJSONB", "Submission"]
