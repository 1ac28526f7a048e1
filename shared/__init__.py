"""
EasyCare Shared Library
=======================

Common utilities, configurations, and abstractions shared across EasyCare services.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - database: MongoDB (motor) and Kafka (aiokafka) clients
    - models: Shared Pydantic models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "EasyCare Team"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
