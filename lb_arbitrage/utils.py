"""
Common helpers shared by the arbitrage engine.

Logger construction, decimal conversion and small formatting helpers.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        # Module loggers print through their own handler only
        logger.propagate = False

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


# Decimal utilities
def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_percentage(value: Decimal, total: Decimal) -> Decimal:
    """Calculate percentage with zero-division protection."""
    if total == 0:
        return Decimal("0")
    return (value / total) * Decimal("100")


def format_amount(value: Decimal, units: int = 6) -> str:
    """Format a human amount with a fixed number of display decimals."""
    quantum = Decimal(1).scaleb(-units)
    return f"{value.quantize(quantum):f}"


def short_addr(address: str) -> str:
    """Shorten a hex address for log lines (0x1234…abcd)."""
    if not address or len(address) < 12:
        return address
    return f"{address[:6]}…{address[-4:]}"
