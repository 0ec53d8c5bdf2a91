from .error_handler import (
    ErrorHandlingMiddleware,
    powertick_error_handler,
    register_error_handling,
    status_code_for,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "powertick_error_handler",
    "register_error_handling",
    "status_code_for",
]
