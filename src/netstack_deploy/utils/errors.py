"""Error handling framework for provisioning operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from netstack_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during provisioning."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    NETWORK = "network"
    STATE = "state"
    DEPENDENCY = "dependency"
    PROVISIONING = "provisioning"
    ROLLBACK = "rollback"
    OUTPUT = "output"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    RESOURCE_LIMIT = "resource_limit"
    VALIDATION = "validation"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Resource failed, recovered by rollback
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    aws_service: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for provisioning errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'type': type(self).__name__,
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_type': self.context.resource_type,
                'operation': self.context.operation,
                'aws_service': self.context.aws_service,
                'aws_operation': self.context.aws_operation,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DeploymentError):
    """Error in a topology file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(DeploymentError):
    """Error related to AWS credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class NetworkError(DeploymentError):
    """Network-related error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(DeploymentError):
    """Error reading or writing a saved state snapshot."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ValidationError(DeploymentError):
    """Load-time validation failure of a resource set."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.VALIDATION)
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class DuplicateResourceError(ValidationError):
    """Two resource specs share a logical name."""

    def __init__(self, logical_name: str):
        super().__init__(
            f"Duplicate logical name '{logical_name}'",
            context=ErrorContext(resource_id=logical_name),
            suggestions=['Give every resource a unique logical name']
        )
        self.logical_name = logical_name


class UnknownReferenceError(ValidationError):
    """A reference names a logical resource that does not exist."""

    def __init__(self, resource_id: str, target: str):
        super().__init__(
            f"Resource '{resource_id}' references '{target}' which does not exist",
            category=ErrorCategory.DEPENDENCY,
            context=ErrorContext(resource_id=resource_id),
            suggestions=[f"Declare a resource named '{target}' or fix the reference"]
        )
        self.resource_id = resource_id
        self.target = target


class CycleDetectedError(ValidationError):
    """The reference graph is not acyclic."""

    def __init__(self, cycle: List[str]):
        closed = list(cycle) + cycle[:1]
        super().__init__(
            f"Circular dependency detected: {' -> '.join(closed)}",
            category=ErrorCategory.DEPENDENCY,
            context=ErrorContext(resource_id=cycle[0] if cycle else None)
        )
        self.cycle = list(cycle)


class UnresolvedReferenceError(DeploymentError):
    """A reference target has no resolved output yet."""

    def __init__(self, resource_id: str, target: str, attribute: str, reason: str):
        super().__init__(
            f"Cannot resolve '{target}.{attribute}' for '{resource_id}': {reason}",
            category=ErrorCategory.DEPENDENCY,
            context=ErrorContext(resource_id=resource_id)
        )
        self.resource_id = resource_id
        self.target = target
        self.attribute = attribute


class DependencyNotReadyError(DeploymentError):
    """Substitution failed during apply; the resolved order was violated."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DEPENDENCY,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class InvalidTransitionError(DeploymentError):
    """A lifecycle transition not allowed from the current state."""

    def __init__(self, resource_id: str, current: str, requested: str):
        super().__init__(
            f"Invalid lifecycle transition for '{resource_id}': {current} -> {requested}",
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            context=ErrorContext(resource_id=resource_id)
        )
        self.resource_id = resource_id
        self.current = current
        self.requested = requested


class CreateFailedError(DeploymentError):
    """The transport failed to create a resource."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.PROVISIONING)
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class DestroyFailedError(DeploymentError):
    """The transport failed to destroy a resource."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('category', ErrorCategory.ROLLBACK)
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class OutputNotAvailableError(DeploymentError):
    """A requested output was never populated."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.OUTPUT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ApplyCancelledError(DeploymentError):
    """The caller cancelled an in-flight run."""

    def __init__(self, message: str = "Apply cancelled by caller", **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CANCELLED,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from AWS and other sources."""

    # Mapping of AWS error codes to error categories and suggestions
    AWS_ERROR_MAPPING = {
        # Credential errors
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Check that your AWS credentials are correctly configured',
                'Verify credentials using: aws sts get-caller-identity',
                'Update credentials if they have expired'
            ]
        },
        'AuthFailure': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS was not able to validate the provided credentials',
            'suggestions': [
                'Verify your AWS access key and secret are correct',
                'Check that your system clock is accurate'
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
                'Re-authenticate with your identity provider'
            ]
        },

        # Permission errors
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Review service control policies (SCPs) if using AWS Organizations'
            ]
        },
        'UnauthorizedOperation': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Operation not authorized',
            'suggestions': [
                'Add the required ec2/elasticloadbalancing/autoscaling permission',
                'Verify you are operating in the correct AWS region'
            ]
        },

        # Resource limit errors
        'VpcLimitExceeded': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'VPC limit exceeded for this region',
            'suggestions': [
                'Delete unused VPCs in the region',
                'Request a VPC quota increase through Service Quotas'
            ]
        },
        'TooManyLoadBalancers': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'Load balancer quota exceeded',
            'suggestions': ['Delete unused load balancers or request a quota increase']
        },
        'LimitExceeded': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'AWS service limit exceeded',
            'suggestions': [
                'Request a service limit increase through AWS Support',
                'Review and clean up unused resources'
            ]
        },
        'RequestLimitExceeded': {
            'category': ErrorCategory.RESOURCE_LIMIT,
            'message': 'API rate limit exceeded',
            'suggestions': ['Lower --max-workers to reduce concurrent API calls']
        },

        # Resource conflicts
        'InvalidGroup.Duplicate': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Security group already exists',
            'suggestions': ['Use a different GroupName or delete the existing group']
        },
        'DuplicateLoadBalancerName': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Load balancer already exists',
            'suggestions': ['Use a different Name or delete the existing load balancer']
        },
        'DuplicateTargetGroupName': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Target group already exists',
            'suggestions': ['Use a different Name or delete the existing target group']
        },
        'AlreadyExists': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Resource already exists',
            'suggestions': ['Use a different name or delete the existing resource']
        },
        'DependencyViolation': {
            'category': ErrorCategory.PROVISIONING,
            'message': 'Resource still has dependent resources',
            'suggestions': [
                'Remove resources that still reference this one',
                'Retry once dependent resources have finished deleting'
            ]
        },

        # Validation errors
        'InvalidParameterValue': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter value',
            'suggestions': [
                'Check parameter format and constraints',
                'Review AWS service documentation for valid values'
            ]
        },
        'ValidationError': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter or configuration',
            'suggestions': ['Review the error message for specific validation failures']
        },
        'InvalidAMIID.NotFound': {
            'category': ErrorCategory.VALIDATION,
            'message': 'AMI not found in this region',
            'suggestions': ['Use an AMI ID that exists in the target region']
        },

        # Network errors
        'RequestTimeout': {
            'category': ErrorCategory.NETWORK,
            'message': 'Request timed out',
            'suggestions': ['Check your network connectivity']
        },
        'ServiceUnavailable': {
            'category': ErrorCategory.NETWORK,
            'message': 'AWS service temporarily unavailable',
            'suggestions': ['Check AWS Service Health Dashboard']
        }
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return self._handle_credential_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return NetworkError(
                message=f'Network error: {str(error)}',
                context=context,
                cause=error,
                suggestions=[
                    'Check your internet connection',
                    'Check if VPN or proxy is interfering'
                ]
            )

        if isinstance(error, DeploymentError):
            return error

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> DeploymentError:
        """Handle AWS ClientError.

        Args:
            error: The ClientError
            context: Error context

        Returns:
            Categorized DeploymentError
        """
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        context.request_id = request_id
        context.aws_operation = error.operation_name

        error_info = self.AWS_ERROR_MAPPING.get(error_code)

        if error_info:
            return DeploymentError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return DeploymentError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.AWS,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=[
                'Check AWS documentation for this error code',
                f'AWS Request ID: {request_id}'
            ]
        )

    def _handle_credential_error(
        self,
        error: Exception,
        context: ErrorContext
    ) -> CredentialError:
        """Handle credential-related errors."""
        if isinstance(error, NoCredentialsError):
            return CredentialError(
                message='No AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables',
                    'Specify a profile with --profile flag'
                ]
            )

        return CredentialError(
            message='Incomplete AWS credentials',
            context=context,
            cause=error,
            suggestions=[
                'Ensure both access key ID and secret access key are provided',
                'Check credential configuration in ~/.aws/credentials'
            ]
        )

    def log_error(self, error: DeploymentError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
