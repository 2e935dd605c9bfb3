"""Dead-letter queue monitoring"""

from .dlq_consumer import DLQConsumer

__all__ = ["DLQConsumer"]
