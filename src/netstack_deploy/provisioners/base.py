"""Transport interface and base provisioner classes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from netstack_deploy.resources.models import ResourceKind
from netstack_deploy.utils.logging import get_logger
from netstack_deploy.utils.retry import RetryStrategy


@dataclass
class CreateResult:
    """What the provider returned for a created resource."""
    provider_id: str
    outputs: Dict[str, Any] = field(default_factory=dict)


class Transport(ABC):
    """Collaborator that performs the remote create and destroy calls.

    ``create`` for a resource that already exists must either fail or return
    the same provider id. ``destroy`` for an identifier that is already gone
    must succeed without doing anything.
    """

    @abstractmethod
    def create(self, kind: ResourceKind, attributes: Dict[str, Any]) -> CreateResult:
        """Create a resource.

        Args:
            kind: Resource kind
            attributes: Fully substituted attributes

        Returns:
            CreateResult with the provider id and output attributes

        Raises:
            CreateFailedError: If the provider rejects the request
        """
        pass

    @abstractmethod
    def destroy(self, kind: ResourceKind, provider_id: str) -> None:
        """Destroy a resource.

        Args:
            kind: Resource kind
            provider_id: Identifier returned by ``create``

        Raises:
            DestroyFailedError: If the provider fails to delete the resource
        """
        pass


class BaseProvisioner(ABC):
    """Base class for per-kind AWS provisioners."""

    # AWS service the provisioner talks to
    service_name = 'ec2'

    # Error codes meaning the resource is already gone
    not_found_codes: frozenset = frozenset()

    def __init__(
        self,
        boto_session: boto3.Session,
        client: Optional[Any] = None,
        retry_strategy: Optional[RetryStrategy] = None
    ):
        """Initialize provisioner with boto3 session.

        Args:
            boto_session: Configured boto3 session for AWS API calls
            client: Pre-built client for ``service_name`` (shared across provisioners)
            retry_strategy: Backoff policy for transient API errors
        """
        self.session = boto_session
        self.client = client if client is not None else boto_session.client(self.service_name)
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.logger = get_logger(type(self).__module__)

    def call(self, operation: str, **kwargs) -> Dict[str, Any]:
        """Invoke one API operation, retrying transient failures."""
        return self.retry_strategy.execute_with_retry(getattr(self.client, operation), **kwargs)

    def is_not_found(self, error: ClientError) -> bool:
        return error.response.get('Error', {}).get('Code') in self.not_found_codes

    @abstractmethod
    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        """Create the resource from substituted attributes."""
        pass

    @abstractmethod
    def destroy(self, provider_id: str) -> None:
        """Destroy the resource; a missing resource is not an error."""
        pass

    @staticmethod
    def tags_from(attributes: Dict[str, Any]) -> Dict[str, str]:
        """Merge the ``Tags`` mapping and the ``Name`` shorthand."""
        tags = {key: str(value) for key, value in attributes.get('Tags', {}).items()}
        if attributes.get('Name'):
            tags['Name'] = str(attributes['Name'])
        return tags

    def tagged(self, resource_type: str, attributes: Dict[str, Any], **params) -> Dict[str, Any]:
        """Add EC2 TagSpecifications to request parameters when there are tags."""
        tags = self.tags_from(attributes)
        if tags:
            params['TagSpecifications'] = [{
                'ResourceType': resource_type,
                'Tags': [{'Key': key, 'Value': value} for key, value in sorted(tags.items())]
            }]
        return params
