from typing import Callable, Optional

from api.backend import BackendAPI

# Global instances initialized at startup (tests may install their own first)
backend: Optional[BackendAPI] = None

# Unsubscribes the metrics listener on shutdown
unsubscribe_metrics: Optional[Callable[[], None]] = None
