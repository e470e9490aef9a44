"""Error taxonomy for link allocation and resolution.

Hierarchy
=========
::
    ShortLinkError
    ├─ InvalidURL           (also ValueError)  malformed creation input, never retried
    ├─ AllocationExhausted                      every candidate collided, code space saturated
    ├─ NotFound             (also LookupError) unknown or expired code, expected outcome
    └─ StoreUnavailable                         store timeout / connection failure, transient

Only candidate collisions are retried inside the core. Everything else
propagates to the caller unchanged.
"""

__all__ = [
    "ShortLinkError",
    "InvalidURL",
    "AllocationExhausted",
    "NotFound",
    "StoreUnavailable",
]


class ShortLinkError(Exception):
    """Base class for every error raised by the engine."""


class InvalidURL(ShortLinkError, ValueError):
    def __init__(self, target_url: str, reason: str = "Invalid URL provided") -> None:
        self.target_url = target_url
        self.reason = reason
        super().__init__(f"{reason}: {target_url!r}")


class AllocationExhausted(ShortLinkError):
    def __init__(self, attempts: int, code_space: int) -> None:
        self.attempts = attempts
        self.code_space = code_space
        super().__init__(
            f"No free short code after {attempts} attempts (code space {code_space}); "
            "grow the code length or alphabet"
        )


class NotFound(ShortLinkError, LookupError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Short code {code!r} not found")


class StoreUnavailable(ShortLinkError):
    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"Mapping store unavailable during {operation}"
        super().__init__(f"{message}: {detail}" if detail else message)
