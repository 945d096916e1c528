"""
TUI decorators for safe action handling.
"""

import inspect
from functools import wraps
from typing import Any, Callable


def _ready(app: Any) -> bool:
    return getattr(app, "state", None) is not None and getattr(app, "controller", None) is not None


def safe_action(action_func: Callable[..., Any]) -> Callable[..., Any]:
    """Skip the action until the workspace and history are loaded."""

    if inspect.iscoroutinefunction(action_func):

        @wraps(action_func)
        async def async_wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not _ready(self):
                return None
            return await action_func(self, *args, **kwargs)

        return async_wrapper

    @wraps(action_func)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        if not _ready(self):
            return None
        return action_func(self, *args, **kwargs)

    return wrapper
