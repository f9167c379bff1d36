"""Security group and security group rule provisioners."""

from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from .base import BaseProvisioner, CreateResult


class SecurityGroupProvisioner(BaseProvisioner):
    """Provisioner for a VPC security group."""

    not_found_codes = frozenset({'InvalidGroup.NotFound', 'InvalidGroupId.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        """Create the security group.

        Attributes:
            GroupName: Group name, unique within the VPC
            Description: Group description
            VpcId: VPC the group belongs to
            Name: Value of the Name tag
        """
        params = self.tagged(
            'security-group', attributes,
            GroupName=attributes['GroupName'],
            Description=attributes.get('Description', attributes['GroupName']),
            VpcId=attributes['VpcId']
        )
        group_id = self.call('create_security_group', **params)['GroupId']

        self.logger.info(f"Created security group {group_id} ({attributes['GroupName']})")
        return CreateResult(
            provider_id=group_id,
            outputs={'id': group_id, 'group_name': attributes['GroupName']}
        )

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_security_group', GroupId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class SecurityGroupRuleProvisioner(BaseProvisioner):
    """Provisioner for a single ingress or egress rule.

    The source is either ``CidrIp`` or ``SourceGroupId``. ``Port`` sets both
    ``FromPort`` and ``ToPort``; protocol ``-1`` (all traffic) takes no ports.
    """

    not_found_codes = frozenset({
        'InvalidSecurityGroupRuleId.NotFound',
        'InvalidGroup.NotFound',
        'InvalidPermission.NotFound',
    })

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        group_id = attributes['GroupId']
        egress = self._is_egress(attributes)
        permission = self._build_permission(attributes)
        operation = 'authorize_security_group_egress' if egress else 'authorize_security_group_ingress'

        try:
            response = self.call(operation, GroupId=group_id, IpPermissions=[permission])
            rule_id = response['SecurityGroupRules'][0]['SecurityGroupRuleId']
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') != 'InvalidPermission.Duplicate':
                raise
            # Same rule already present (e.g. the default egress rule)
            rule_id = self._find_existing_rule(group_id, egress, attributes)
            if rule_id is None:
                raise

        return CreateResult(
            provider_id=rule_id,
            outputs={'id': rule_id, 'group_id': group_id, 'direction': 'egress' if egress else 'ingress'}
        )

    def destroy(self, provider_id: str) -> None:
        try:
            rules = self.call(
                'describe_security_group_rules',
                SecurityGroupRuleIds=[provider_id]
            ).get('SecurityGroupRules', [])
            for rule in rules:
                operation = 'revoke_security_group_egress' if rule.get('IsEgress') else 'revoke_security_group_ingress'
                self.call(operation, GroupId=rule['GroupId'], SecurityGroupRuleIds=[provider_id])
        except ClientError as e:
            if not self.is_not_found(e):
                raise

    @staticmethod
    def _is_egress(attributes: Dict[str, Any]) -> bool:
        direction = str(attributes.get('Direction', 'ingress')).lower()
        if direction not in ('ingress', 'egress'):
            raise ValueError(f"Direction must be 'ingress' or 'egress', got '{direction}'")
        return direction == 'egress'

    @staticmethod
    def _ports(attributes: Dict[str, Any]):
        from_port = attributes.get('FromPort', attributes.get('Port'))
        to_port = attributes.get('ToPort', attributes.get('Port'))
        return from_port, to_port

    def _build_permission(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        protocol = str(attributes.get('IpProtocol', 'tcp'))
        permission: Dict[str, Any] = {'IpProtocol': protocol}

        if protocol != '-1':
            from_port, to_port = self._ports(attributes)
            permission['FromPort'] = int(from_port)
            permission['ToPort'] = int(to_port)

        description = attributes.get('Description')
        if attributes.get('SourceGroupId'):
            pair = {'GroupId': attributes['SourceGroupId']}
            if description:
                pair['Description'] = description
            permission['UserIdGroupPairs'] = [pair]
        else:
            ip_range = {'CidrIp': attributes.get('CidrIp', '0.0.0.0/0')}
            if description:
                ip_range['Description'] = description
            permission['IpRanges'] = [ip_range]

        return permission

    def _find_existing_rule(self, group_id: str, egress: bool, attributes: Dict[str, Any]) -> Optional[str]:
        rules = self.call(
            'describe_security_group_rules',
            Filters=[{'Name': 'group-id', 'Values': [group_id]}]
        ).get('SecurityGroupRules', [])

        protocol = str(attributes.get('IpProtocol', 'tcp'))
        from_port, to_port = self._ports(attributes)
        for rule in rules:
            if bool(rule.get('IsEgress')) != egress or rule.get('IpProtocol') != protocol:
                continue
            if protocol != '-1' and (rule.get('FromPort') != int(from_port) or rule.get('ToPort') != int(to_port)):
                continue
            if attributes.get('SourceGroupId'):
                if rule.get('ReferencedGroupInfo', {}).get('GroupId') != attributes['SourceGroupId']:
                    continue
            elif rule.get('CidrIpv4') != attributes.get('CidrIp', '0.0.0.0/0'):
                continue
            return rule['SecurityGroupRuleId']
        return None
