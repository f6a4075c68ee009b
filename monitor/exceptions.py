"""
Custom exceptions for the wakeup monitor
"""

from typing import Literal, Optional


# All possible error sources in the monitor
ErrorSource = Literal[
  "event_source",  # Calendar query / reminder rule lookups
  "wake_scheduler",  # OS wake (alarm/timer) scheduling
  "presentation",  # Persistent indicator and alert display
  "process_registry",  # Process registration / start requests
  "config",  # Configuration and payload parsing
  "unknown",  # Uncategorized errors
]


class AppError(Exception):
  """
  Base exception for monitor errors.
  Every failure raised by an OS interface is converted to this shape so the
  periodic ticks can log it uniformly and carry on.
  """

  def __init__(
    self,
    description: str,
    name: str,
    source: ErrorSource,
    caused_by: Optional[str] = None,
  ):
    """
    Initialize a monitor error

    Args:
        description: Human-readable error message
        name: Unique error identifier (e.g., "EXACT_WAKE_DENIED")
        source: Where the error originated from
        caused_by: Original error details if this wraps another error
    """
    self.description: str = description
    self.name: str = name
    self.source: ErrorSource = source
    self.caused_by: Optional[str] = caused_by
    super().__init__(description)

  def __str__(self) -> str:
    if self.caused_by:
      return f"[{self.source}] {self.name}: {self.description} (caused by {self.caused_by})"
    return f"[{self.source}] {self.name}: {self.description}"

  @classmethod
  def from_exception(
    cls,
    e: Exception,
    name: Optional[str] = None,
    source: Optional[ErrorSource] = None,
    context: Optional[str] = None,
  ) -> "AppError":
    """
    Create an error of this class from an existing exception

    Args:
        e: The original exception
        name: Error identifier, defaults to the class default
        source: Where this error originated, defaults to the class default
        context: Additional context to prepend to the description

    Returns:
        Error with original exception details preserved
    """
    original_msg = str(e)
    description = f"{context}: {original_msg}" if context else original_msg

    return cls(
      description=description,
      name=name or getattr(cls, "default_name", "UNKNOWN_ERROR"),
      source=source or getattr(cls, "default_source", "unknown"),
      caused_by=f"{e.__class__.__name__}: {original_msg}",
    )


class DataSourceUnavailable(AppError):
  """The event source could not be queried (I/O error, revoked permission)."""

  default_name = "DATA_SOURCE_UNAVAILABLE"
  default_source: ErrorSource = "event_source"

  def __init__(
    self,
    description: str,
    name: str = default_name,
    source: ErrorSource = default_source,
    caused_by: Optional[str] = None,
  ):
    super().__init__(description, name, source, caused_by)


class PermissionDenied(AppError):
  """Exact wake scheduling is not permitted for this process."""

  default_name = "EXACT_WAKE_DENIED"
  default_source: ErrorSource = "wake_scheduler"

  def __init__(
    self,
    description: str,
    name: str = default_name,
    source: ErrorSource = default_source,
    caused_by: Optional[str] = None,
  ):
    super().__init__(description, name, source, caused_by)


class PresentationFailure(AppError):
  """The persistent indicator or an alert could not be created or shown."""

  default_name = "PRESENTATION_FAILED"
  default_source: ErrorSource = "presentation"

  def __init__(
    self,
    description: str,
    name: str = default_name,
    source: ErrorSource = default_source,
    caused_by: Optional[str] = None,
  ):
    super().__init__(description, name, source, caused_by)


class ProcessRegistryError(AppError):
  """The OS process registry could not be queried or refused a start."""

  default_name = "PROCESS_REGISTRY_FAILED"
  default_source: ErrorSource = "process_registry"

  def __init__(
    self,
    description: str,
    name: str = default_name,
    source: ErrorSource = default_source,
    caused_by: Optional[str] = None,
  ):
    super().__init__(description, name, source, caused_by)
