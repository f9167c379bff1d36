"""AWS transport: dispatches create/destroy to per-kind provisioners."""

from typing import Any, Dict, Optional

from netstack_deploy.resources.models import ResourceKind
from netstack_deploy.utils.aws_client import AWSClientManager
from netstack_deploy.utils.errors import (
    CreateFailedError,
    DestroyFailedError,
    ErrorContext,
    error_handler,
)
from netstack_deploy.utils.logging import get_logger
from netstack_deploy.utils.retry import RetryStrategy

from .base import BaseProvisioner, CreateResult, Transport
from .compute import AutoscalingGroupProvisioner, LaunchTemplateProvisioner
from .load_balancer import ListenerProvisioner, LoadBalancerProvisioner, TargetGroupProvisioner
from .security_group import SecurityGroupProvisioner, SecurityGroupRuleProvisioner
from .vpc import (
    InternetGatewayProvisioner,
    NetworkProvisioner,
    RouteTableAssociationProvisioner,
    RouteTableProvisioner,
    SubnetProvisioner,
)

logger = get_logger(__name__)

PROVISIONER_CLASSES = {
    ResourceKind.NETWORK: NetworkProvisioner,
    ResourceKind.SUBNET: SubnetProvisioner,
    ResourceKind.INTERNET_GATEWAY: InternetGatewayProvisioner,
    ResourceKind.ROUTE_TABLE: RouteTableProvisioner,
    ResourceKind.ROUTE_TABLE_ASSOCIATION: RouteTableAssociationProvisioner,
    ResourceKind.SECURITY_GROUP: SecurityGroupProvisioner,
    ResourceKind.SECURITY_GROUP_RULE: SecurityGroupRuleProvisioner,
    ResourceKind.LOAD_BALANCER: LoadBalancerProvisioner,
    ResourceKind.TARGET_GROUP: TargetGroupProvisioner,
    ResourceKind.LISTENER: ListenerProvisioner,
    ResourceKind.LAUNCH_TEMPLATE: LaunchTemplateProvisioner,
    ResourceKind.AUTOSCALING_GROUP: AutoscalingGroupProvisioner,
}


class AWSTransport(Transport):
    """Transport backed by boto3 clients for EC2, ELBv2, and Auto Scaling."""

    def __init__(
        self,
        client_manager: AWSClientManager,
        retry_strategy: Optional[RetryStrategy] = None
    ):
        """Initialize the transport.

        Args:
            client_manager: Source of the boto3 session and shared clients
            retry_strategy: Backoff policy applied to every API call
        """
        self.client_manager = client_manager
        retry_strategy = retry_strategy or RetryStrategy()

        self.provisioners: Dict[ResourceKind, BaseProvisioner] = {
            kind: provisioner_class(
                client_manager.session,
                client=client_manager.get_client(provisioner_class.service_name),
                retry_strategy=retry_strategy
            )
            for kind, provisioner_class in PROVISIONER_CLASSES.items()
        }

    def create(self, kind: ResourceKind, attributes: Dict[str, Any]) -> CreateResult:
        provisioner = self.provisioners[kind]
        try:
            return provisioner.create(attributes)
        except Exception as e:
            error = error_handler.handle_exception(
                e, ErrorContext(resource_type=kind.value, operation='create')
            )
            raise CreateFailedError(
                f"Failed to create {kind.value}: {error.message}",
                category=error.category,
                context=error.context,
                cause=e,
                suggestions=error.suggestions
            ) from e

    def destroy(self, kind: ResourceKind, provider_id: str) -> None:
        provisioner = self.provisioners[kind]
        try:
            provisioner.destroy(provider_id)
        except Exception as e:
            error = error_handler.handle_exception(
                e, ErrorContext(resource_type=kind.value, operation='destroy')
            )
            raise DestroyFailedError(
                f"Failed to destroy {kind.value} {provider_id}: {error.message}",
                category=error.category,
                context=error.context,
                cause=e,
                suggestions=error.suggestions
            ) from e
