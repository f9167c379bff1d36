"""Utility modules for logging, AWS client management, and helpers."""

from netstack_deploy.utils.aws_client import AWSClientManager, AWSCredentials
from netstack_deploy.utils.retry import RetryStrategy
from netstack_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    CredentialError,
    NetworkError,
    StateError,
    ValidationError,
    DuplicateResourceError,
    UnknownReferenceError,
    CycleDetectedError,
    UnresolvedReferenceError,
    DependencyNotReadyError,
    InvalidTransitionError,
    CreateFailedError,
    DestroyFailedError,
    OutputNotAvailableError,
    ApplyCancelledError,
    ErrorHandler,
    error_handler
)
from netstack_deploy.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Retry
    'RetryStrategy',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'CredentialError',
    'NetworkError',
    'StateError',
    'ValidationError',
    'DuplicateResourceError',
    'UnknownReferenceError',
    'CycleDetectedError',
    'UnresolvedReferenceError',
    'DependencyNotReadyError',
    'InvalidTransitionError',
    'CreateFailedError',
    'DestroyFailedError',
    'OutputNotAvailableError',
    'ApplyCancelledError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
