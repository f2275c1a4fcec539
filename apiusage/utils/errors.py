"""
Error types and helpers for consistent error message extraction.

Trace errors are isolated to the trace file they came from; store
errors abort the batch (and the run) because counts must not be
aggregated without durability.
"""


class TraceError(Exception):
    """Base class for problems with a single trace document."""


class TraceDecodeError(TraceError):
    """The file could not be decoded into the trace model."""


class TraceCorruptionError(TraceError):
    """A row reference, schema, or embedding chain is inconsistent."""


class StoreError(Exception):
    """Base class for aggregation store failures."""


class StoreUnavailableError(StoreError):
    """The store medium could not be opened or created."""


class StoreWriteError(StoreError):
    """A batch could not be committed; nothing from it was written."""


def get_error_message(error: BaseException | object) -> str:
    """
    Safely extract an error message from an unknown error type.

    Falls back to the exception class name when the exception
    carries no message.
    """
    if isinstance(error, Exception):
        return str(error) or type(error).__name__
    return "Unknown error"
