"""Application load balancer, target group, and listener provisioners."""

from typing import Any, Dict

from botocore.exceptions import ClientError

from .base import BaseProvisioner, CreateResult

# Target group parameters passed straight through to the API when present
TARGET_GROUP_PARAMETERS = (
    'HealthCheckProtocol',
    'HealthCheckPort',
    'HealthCheckPath',
    'HealthCheckIntervalSeconds',
    'HealthCheckTimeoutSeconds',
    'HealthyThresholdCount',
    'UnhealthyThresholdCount',
    'TargetType',
)


class _ELBProvisioner(BaseProvisioner):
    service_name = 'elbv2'

    def elb_tags(self, attributes: Dict[str, Any], **params) -> Dict[str, Any]:
        tags = self.tags_from(attributes)
        if tags:
            params['Tags'] = [{'Key': key, 'Value': value} for key, value in sorted(tags.items())]
        return params


class LoadBalancerProvisioner(_ELBProvisioner):
    """Provisioner for an internet-facing application load balancer.

    ELBv2 returns the existing load balancer when asked to create one with an
    identical name and configuration.
    """

    not_found_codes = frozenset({'LoadBalancerNotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        params = self.elb_tags(
            attributes,
            Name=attributes['LoadBalancerName'],
            Subnets=list(attributes['Subnets']),
            SecurityGroups=list(attributes.get('SecurityGroups', [])),
            Scheme=attributes.get('Scheme', 'internet-facing'),
            Type=attributes.get('Type', 'application')
        )
        load_balancer = self.call('create_load_balancer', **params)['LoadBalancers'][0]
        arn = load_balancer['LoadBalancerArn']

        self.logger.info(f"Created load balancer {arn} ({load_balancer.get('DNSName')})")
        return CreateResult(
            provider_id=arn,
            outputs={
                'id': arn,
                'arn': arn,
                'dns_name': load_balancer['DNSName'],
                'hosted_zone_id': load_balancer.get('CanonicalHostedZoneId'),
            }
        )

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_load_balancer', LoadBalancerArn=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class TargetGroupProvisioner(_ELBProvisioner):
    """Provisioner for a target group with an HTTP health check."""

    not_found_codes = frozenset({'TargetGroupNotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        params = self.elb_tags(
            attributes,
            Name=attributes['TargetGroupName'],
            Protocol=attributes.get('Protocol', 'HTTP'),
            Port=int(attributes.get('Port', 80)),
            VpcId=attributes['VpcId']
        )
        for key in TARGET_GROUP_PARAMETERS:
            if key in attributes:
                params[key] = attributes[key]

        target_group = self.call('create_target_group', **params)['TargetGroups'][0]
        arn = target_group['TargetGroupArn']
        return CreateResult(provider_id=arn, outputs={'id': arn, 'arn': arn})

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_target_group', TargetGroupArn=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class ListenerProvisioner(_ELBProvisioner):
    """Provisioner for a listener forwarding to a target group."""

    not_found_codes = frozenset({'ListenerNotFound', 'LoadBalancerNotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        params = self.elb_tags(
            attributes,
            LoadBalancerArn=attributes['LoadBalancerArn'],
            Protocol=attributes.get('Protocol', 'HTTP'),
            Port=int(attributes.get('Port', 80)),
            DefaultActions=[{
                'Type': 'forward',
                'TargetGroupArn': attributes['TargetGroupArn'],
            }]
        )
        listener = self.call('create_listener', **params)['Listeners'][0]
        arn = listener['ListenerArn']
        return CreateResult(provider_id=arn, outputs={'id': arn, 'arn': arn})

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_listener', ListenerArn=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise
