from .buffer import BufferFullError, DoubleBuffer
from .buffer_set import DoubleBufferSet

__all__ = ["BufferFullError", "DoubleBuffer", "DoubleBufferSet"]
