"""Launch template and autoscaling group provisioners."""

import base64
from typing import Any, Dict

from botocore.exceptions import ClientError

from .base import BaseProvisioner, CreateResult


class LaunchTemplateProvisioner(BaseProvisioner):
    """Provisioner for an EC2 launch template.

    ``UserData`` is given as plain text and base64 encoded here.
    ``InstanceTags`` are applied to every instance launched from the template.
    """

    not_found_codes = frozenset({'InvalidLaunchTemplateId.NotFound', 'InvalidLaunchTemplateName.NotFoundException'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        data: Dict[str, Any] = {
            'ImageId': attributes['ImageId'],
            'InstanceType': attributes.get('InstanceType', 't2.micro'),
        }
        if attributes.get('SecurityGroupIds'):
            data['SecurityGroupIds'] = list(attributes['SecurityGroupIds'])
        if attributes.get('UserData'):
            data['UserData'] = base64.b64encode(attributes['UserData'].encode('utf-8')).decode('ascii')
        instance_tags = attributes.get('InstanceTags', {})
        if instance_tags:
            data['TagSpecifications'] = [{
                'ResourceType': 'instance',
                'Tags': [{'Key': key, 'Value': str(value)} for key, value in sorted(instance_tags.items())]
            }]

        params = self.tagged(
            'launch-template', attributes,
            LaunchTemplateName=attributes['LaunchTemplateName'],
            VersionDescription=attributes.get('VersionDescription', 'Initial version'),
            LaunchTemplateData=data
        )
        template = self.call('create_launch_template', **params)['LaunchTemplate']
        template_id = template['LaunchTemplateId']

        return CreateResult(
            provider_id=template_id,
            outputs={
                'id': template_id,
                'name': template.get('LaunchTemplateName', attributes['LaunchTemplateName']),
                'latest_version': template.get('LatestVersionNumber'),
            }
        )

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_launch_template', LaunchTemplateId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class AutoscalingGroupProvisioner(BaseProvisioner):
    """Provisioner for an autoscaling group registered with target groups."""

    service_name = 'autoscaling'

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        name = attributes['AutoScalingGroupName']
        params: Dict[str, Any] = {
            'AutoScalingGroupName': name,
            'LaunchTemplate': {
                'LaunchTemplateId': attributes['LaunchTemplateId'],
                'Version': attributes.get('LaunchTemplateVersion', '$Latest'),
            },
            'MinSize': int(attributes.get('MinSize', 1)),
            'MaxSize': int(attributes.get('MaxSize', 1)),
            'VPCZoneIdentifier': ','.join(attributes['Subnets']),
        }
        if 'DesiredCapacity' in attributes:
            params['DesiredCapacity'] = int(attributes['DesiredCapacity'])
        if attributes.get('TargetGroupARNs'):
            params['TargetGroupARNs'] = list(attributes['TargetGroupARNs'])

        tags = self.tags_from(attributes)
        if tags:
            params['Tags'] = [
                {
                    'ResourceId': name,
                    'ResourceType': 'auto-scaling-group',
                    'Key': key,
                    'Value': value,
                    'PropagateAtLaunch': True,
                }
                for key, value in sorted(tags.items())
            ]

        self.call('create_auto_scaling_group', **params)

        self.logger.info(f"Created autoscaling group {name}")
        return CreateResult(provider_id=name, outputs={'id': name, 'name': name})

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_auto_scaling_group', AutoScalingGroupName=provider_id, ForceDelete=True)
        except ClientError as e:
            if not self.is_not_found(e):
                raise

    def is_not_found(self, error: ClientError) -> bool:
        # Autoscaling reports a missing group as a generic ValidationError
        details = error.response.get('Error', {})
        return details.get('Code') == 'ValidationError' and 'not found' in details.get('Message', '').lower()
