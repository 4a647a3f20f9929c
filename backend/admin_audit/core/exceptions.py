"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=401, details=details)


class InvalidCredentialsError(AuthenticationError):
    """Invalid email or password"""
    def __init__(self):
        super().__init__("Invalid email or password")


class AccountSuspendedError(AuthenticationError):
    """Account is blocked by an active suspension"""
    def __init__(self, reason: str):
        super().__init__(reason, details={"suspended": True})


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)


class LocationAccessDeniedError(AuthorizationError):
    """Target lies outside the administrator's assigned location"""
    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} is outside your assigned location")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class DuplicateEmailError(BusinessLogicError):
    """Email already registered"""
    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already registered")


# System Errors
class AuditStoreUnavailableError(BaseAPIException):
    """Audit store has not been provisioned"""
    def __init__(self, message: str = "Audit log store is not set up"):
        super().__init__(message, status_code=503)
