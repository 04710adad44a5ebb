"""Error types for taskpipe.

- ErrorCode: Codes for errors the pipe produces itself
- PipeError/PipeException: Structured error model and its raisable wrapper
"""

from .errors import ErrorCode, PipeError, PipeException

__all__ = ["ErrorCode", "PipeError", "PipeException"]
