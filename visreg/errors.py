"""Exception hierarchy for the capture/compare pipeline."""

from __future__ import annotations


class VisregError(Exception):
    """Base class for all errors raised by visreg."""


class ConfigError(VisregError):
    """Configuration could not be loaded or is inconsistent."""


class AdapterNotFoundError(ConfigError):
    """No adapter factory is registered under the requested name."""

    def __init__(self, kind: str, name: str, available: list[str]):
        self.kind = kind
        self.name = name
        self.available = available
        super().__init__(
            f"Unknown {kind} adapter '{name}'. "
            f"Available: {', '.join(available) or '(none)'}"
        )


class DiscoveryError(VisregError):
    """A test case adapter failed to start or enumerate its cases."""


class CaptureError(VisregError):
    """A single screenshot capture failed."""


class CaptureTimeoutError(CaptureError):
    def __init__(self, case_id: str, timeout_ms: int):
        self.case_id = case_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Capture timeout after {timeout_ms}ms")


class StorageError(VisregError):
    """Invalid filename or failed filesystem operation."""

    code = "STORAGE_ERROR"


class ComparisonError(VisregError):
    """A comparison engine failed or is not registered."""
