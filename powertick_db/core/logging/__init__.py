from .logger import (
    clear_correlation_id,
    ensure_correlation_id,
    get_correlation_id,
    get_logger,
    log_stage,
    new_correlation_id,
    set_correlation_id,
    setup_logging,
)

__all__ = [
    "clear_correlation_id",
    "ensure_correlation_id",
    "get_correlation_id",
    "get_logger",
    "log_stage",
    "new_correlation_id",
    "set_correlation_id",
    "setup_logging",
]
