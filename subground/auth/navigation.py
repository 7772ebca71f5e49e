"""Navigation side effects triggered by session changes."""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"

# Any callable taking a route path, e.g. a router's push method
Navigator = Callable[[str], None]


def log_navigation(path: str) -> None:
    """Default navigator for headless use: log the requested route."""
    logger.info(f"Navigation requested: {path}")


class RecordingNavigator:
    """Navigator that remembers every requested route."""

    def __init__(self):
        self.history: List[str] = []

    def __call__(self, path: str) -> None:
        self.history.append(path)
        log_navigation(path)

    @property
    def last(self):
        return self.history[-1] if self.history else None
