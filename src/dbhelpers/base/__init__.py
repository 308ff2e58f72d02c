from .executor import Executor
from .hydrator import Hydrator
from .interface import BaseInterface

__all__ = ("Executor", "Hydrator", "BaseInterface")
