"""Exceptions raised by fastapi-datatables."""


class DataTablesError(Exception):
    """Base class for all fastapi-datatables errors."""


class ColumnResolutionError(DataTablesError):
    """A declared column descriptor could not be mapped to a model field.

    Raised only once both the qualified and the legacy dotted notation have
    been tried, so it always points at a misconfigured column list.
    """

    def __init__(self, descriptor: str, reason: str = ""):
        self.descriptor = descriptor
        self.reason = reason
        message = f"Cannot resolve column '{descriptor}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MethodNotImplementedError(DataTablesError, NotImplementedError):
    """A collaborator hook (raw records, row transform, paginator) is missing."""


class UnsupportedAdapterError(DataTablesError, ValueError):
    """No text cast type is known for the database adapter."""

    def __init__(self, adapter: str):
        self.adapter = adapter
        super().__init__(f"Unsupported database adapter '{adapter}'")
