"""Transport collaborator and AWS resource provisioners."""

from .base import BaseProvisioner, CreateResult, Transport
from .aws import AWSTransport, PROVISIONER_CLASSES
from .vpc import (
    NetworkProvisioner,
    SubnetProvisioner,
    InternetGatewayProvisioner,
    RouteTableProvisioner,
    RouteTableAssociationProvisioner,
)
from .security_group import SecurityGroupProvisioner, SecurityGroupRuleProvisioner
from .load_balancer import LoadBalancerProvisioner, TargetGroupProvisioner, ListenerProvisioner
from .compute import LaunchTemplateProvisioner, AutoscalingGroupProvisioner

__all__ = [
    'BaseProvisioner',
    'CreateResult',
    'Transport',
    'AWSTransport',
    'PROVISIONER_CLASSES',
    'NetworkProvisioner',
    'SubnetProvisioner',
    'InternetGatewayProvisioner',
    'RouteTableProvisioner',
    'RouteTableAssociationProvisioner',
    'SecurityGroupProvisioner',
    'SecurityGroupRuleProvisioner',
    'LoadBalancerProvisioner',
    'TargetGroupProvisioner',
    'ListenerProvisioner',
    'LaunchTemplateProvisioner',
    'AutoscalingGroupProvisioner',
]
