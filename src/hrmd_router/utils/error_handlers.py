"""
Error handling utilities for the HRMD receiver determination service.

This module provides custom exceptions and error handling functions used to
decide, at each component boundary, whether a failure aborts the document or
is skipped with a warning.

Classes:
    RoutingError: Base exception for all receiver determination errors.
    ConfigurationError: Exception for missing or invalid configuration.
    DocumentParseError: Exception for unreadable or malformed input documents.
    RoutingKeyUndefinedError: Exception for unknown routing parameters.
    DirectoryLookupError: Exception for directory lookup failures.
    OutputDeliveryError: Exception for output sink failures.

Functions:
    log_error_with_context: Log an abort reason with its document context.
    create_error_report: Create structured error report for the caller.
"""

import logging
import traceback
from datetime import datetime
from typing import Any, Dict, Optional


class RoutingError(Exception):
    """
    Base exception for receiver determination errors.

    Attributes:
        message: Human-readable failure description.
        document_id: Optional identifier of the IDoc being processed.
        stage: Optional routing stage where the error occurred.
        recoverable: Whether processing can continue with partial data.
        original_error: Lower-level exception this error was raised from.
    """

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        stage: Optional[str] = None,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.document_id = document_id
        self.stage = stage
        self.recoverable = recoverable
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging and reporting.

        Returns:
            Dictionary with the error class, message, document and stage, plus
            the wrapped exception when there is one.
        """
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "document_id": self.document_id,
            "stage": self.stage,
            "recoverable": self.recoverable,
        }

        if self.original_error:
            result["original_error_type"] = type(self.original_error).__name__
            result["original_error_message"] = str(self.original_error)

        return result


class ConfigurationError(RoutingError):
    """
    Exception for missing or malformed router configuration.

    Attributes:
        config_key: Dotted key of the offending value, e.g. "lookup.channel_name".
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            stage="config_loaded",
            recoverable=False,
            original_error=original_error,
        )
        self.config_key = config_key

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


class DocumentParseError(RoutingError):
    """Exception raised when the inbound IDoc cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            document_id=document_id,
            stage="parsed",
            recoverable=False,
            original_error=original_error,
        )


class RoutingKeyUndefinedError(RoutingError):
    """
    Exception for routing parameters that are not defined for the scenario.

    Attributes:
        parameter_name: Name of the parameter that was looked up (e.g. "R1000").
    """

    def __init__(
        self,
        message: str,
        parameter_name: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            document_id=document_id,
            stage="targeted",
            recoverable=True,
        )
        self.parameter_name = parameter_name

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["parameter_name"] = self.parameter_name
        return result


class DirectoryLookupError(RoutingError):
    """
    Exception for directory lookup errors.

    Attributes:
        service: Directory-service identity the lookup was sent through.
        channel: Directory-channel identity the lookup was sent through.
        status_code: HTTP status of the directory answer, when one was received.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        channel: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            stage="broadcast",
            recoverable=True,
            original_error=original_error,
        )
        self.service = service
        self.channel = channel
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["service"] = self.service
        result["channel"] = self.channel
        result["status_code"] = self.status_code
        return result


class OutputDeliveryError(RoutingError):
    """Exception raised when the encoded decision cannot be handed to the sink."""

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            document_id=document_id,
            stage="encoded",
            recoverable=True,
            original_error=original_error,
        )


def log_error_with_context(
    error: Exception, logger: logging.Logger, context: Dict[str, Any]
) -> None:
    """
    Log an abort reason together with the document it happened to.

    One ERROR line names the stage and document, followed by the wrapped
    cause and every extra context entry. The traceback is added at DEBUG.

    Args:
        error: Exception that aborted the document.
        logger: Logger of the component reporting the failure.
        context: document_id, stage and any further key/value pairs.
    """
    error_type = type(error).__name__
    error_message = str(error)

    document_id = context.get("document_id") or "unknown"
    stage = context.get("stage", "unknown")

    logger.error(
        f"Error in {stage} for document {document_id}: [{error_type}] {error_message}"
    )

    if isinstance(error, RoutingError) and error.original_error:
        original_type = type(error.original_error).__name__
        original_msg = str(error.original_error)
        logger.error(f"  Original error: [{original_type}] {original_msg}")

    for key, value in context.items():
        if key not in ["document_id", "stage"]:
            logger.error(f"  {key}: {value}")

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Stack trace:")
        logger.debug(traceback.format_exc())


def create_error_report(
    error: Exception,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Create a structured error report for an aborted document.

    Args:
        error: The exception that occurred.
        timestamp: When the document was aborted. Defaults to now.

    Returns:
        A dictionary containing error_type, error_message, traceback, timestamp
        and, for RoutingError instances, their own fields.

    Example:
        >>> error = DocumentParseError("not XML", document_id="0000000000012345")
        >>> report = create_error_report(error)
        >>> report["error_type"]
        'DocumentParseError'
    """
    if timestamp is None:
        timestamp = datetime.now()

    report = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": traceback.format_exc(),
        "timestamp": timestamp.isoformat(),
    }

    if isinstance(error, RoutingError):
        report.update(error.to_dict())

    return report
