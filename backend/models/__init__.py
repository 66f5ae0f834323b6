"""Models module for Pydantic schemas.

This module exposes the records, cache document and result models.
"""

from models.schemas import (
    READ_ONLY_OPERATIONS,
    CheckErrorsResult,
    ClearCacheResult,
    ErrorCache,
    ErrorKind,
    ErrorRecord,
    FrameworkId,
    FrameworkInfo,
    MonitorReport,
    OperationArgs,
    OperationName,
    OperationResult,
    ReportErrorRequest,
    ReportErrorResult,
    RestartResult,
    RestartStatus,
)

__all__ = [
    "READ_ONLY_OPERATIONS",
    "CheckErrorsResult",
    "ClearCacheResult",
    "ErrorCache",
    "ErrorKind",
    "ErrorRecord",
    "FrameworkId",
    "FrameworkInfo",
    "MonitorReport",
    "OperationArgs",
    "OperationName",
    "OperationResult",
    "ReportErrorRequest",
    "ReportErrorResult",
    "RestartResult",
    "RestartStatus",
]
