"""Client-side building blocks for a distributed message queue: messages, queue selectors, call contexts, interceptors, utilities and logging."""

__version__ = "0.1.0"

__all__ = [
    "ctx",
    "interceptor",
    "log",
    "message",
    "selector",
    "utils",
]