"""VPC, subnet, internet gateway, and route table provisioners."""

from typing import Any, Dict

from botocore.exceptions import ClientError

from .base import BaseProvisioner, CreateResult


class NetworkProvisioner(BaseProvisioner):
    """Provisioner for a VPC with DNS hostnames enabled."""

    not_found_codes = frozenset({'InvalidVpcID.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        """Create the VPC.

        Attributes:
            CidrBlock: IPv4 CIDR of the VPC
            EnableDnsHostnames: Whether instances get public DNS names (default True)
            Name: Value of the Name tag
        """
        response = self.call(
            'create_vpc',
            **self.tagged('vpc', attributes, CidrBlock=attributes['CidrBlock'])
        )
        vpc = response['Vpc']
        vpc_id = vpc['VpcId']

        if attributes.get('EnableDnsHostnames', True):
            try:
                self.call(
                    'modify_vpc_attribute',
                    VpcId=vpc_id,
                    EnableDnsHostnames={'Value': True}
                )
            except ClientError:
                # Don't leave a half-configured VPC behind
                self.destroy(vpc_id)
                raise

        self.logger.info(f"Created VPC {vpc_id}")
        return CreateResult(
            provider_id=vpc_id,
            outputs={'id': vpc_id, 'cidr_block': vpc.get('CidrBlock', attributes['CidrBlock'])}
        )

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_vpc', VpcId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class SubnetProvisioner(BaseProvisioner):
    """Provisioner for a subnet inside a VPC."""

    not_found_codes = frozenset({'InvalidSubnetID.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        params = self.tagged(
            'subnet', attributes,
            VpcId=attributes['VpcId'],
            CidrBlock=attributes['CidrBlock']
        )
        if attributes.get('AvailabilityZone'):
            params['AvailabilityZone'] = attributes['AvailabilityZone']

        subnet = self.call('create_subnet', **params)['Subnet']
        subnet_id = subnet['SubnetId']

        if attributes.get('MapPublicIpOnLaunch'):
            try:
                self.call(
                    'modify_subnet_attribute',
                    SubnetId=subnet_id,
                    MapPublicIpOnLaunch={'Value': True}
                )
            except ClientError:
                self.destroy(subnet_id)
                raise

        return CreateResult(
            provider_id=subnet_id,
            outputs={
                'id': subnet_id,
                'availability_zone': subnet.get('AvailabilityZone'),
                'cidr_block': subnet.get('CidrBlock', attributes['CidrBlock']),
            }
        )

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_subnet', SubnetId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class InternetGatewayProvisioner(BaseProvisioner):
    """Provisioner for an internet gateway, attached to a VPC when ``VpcId`` is set."""

    not_found_codes = frozenset({'InvalidInternetGatewayID.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        gateway = self.call(
            'create_internet_gateway',
            **self.tagged('internet-gateway', attributes)
        )['InternetGateway']
        igw_id = gateway['InternetGatewayId']

        vpc_id = attributes.get('VpcId')
        if vpc_id:
            try:
                self.call('attach_internet_gateway', InternetGatewayId=igw_id, VpcId=vpc_id)
            except ClientError:
                self.call('delete_internet_gateway', InternetGatewayId=igw_id)
                raise

        return CreateResult(provider_id=igw_id, outputs={'id': igw_id, 'vpc_id': vpc_id})

    def destroy(self, provider_id: str) -> None:
        """Detach the gateway from every VPC, then delete it."""
        try:
            response = self.call('describe_internet_gateways', InternetGatewayIds=[provider_id])
            for gateway in response.get('InternetGateways', []):
                for attachment in gateway.get('Attachments', []):
                    self.call(
                        'detach_internet_gateway',
                        InternetGatewayId=provider_id,
                        VpcId=attachment['VpcId']
                    )
            self.call('delete_internet_gateway', InternetGatewayId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class RouteTableProvisioner(BaseProvisioner):
    """Provisioner for a route table and its routes.

    ``Routes`` is a list of ``{'DestinationCidrBlock': ..., 'GatewayId': ...}``.
    """

    not_found_codes = frozenset({'InvalidRouteTableID.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        route_table = self.call(
            'create_route_table',
            **self.tagged('route-table', attributes, VpcId=attributes['VpcId'])
        )['RouteTable']
        route_table_id = route_table['RouteTableId']

        try:
            for route in attributes.get('Routes', []):
                self.call('create_route', RouteTableId=route_table_id, **route)
        except ClientError:
            self.destroy(route_table_id)
            raise

        return CreateResult(provider_id=route_table_id, outputs={'id': route_table_id})

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('delete_route_table', RouteTableId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise


class RouteTableAssociationProvisioner(BaseProvisioner):
    """Provisioner for associating a route table with a subnet."""

    not_found_codes = frozenset({'InvalidAssociationID.NotFound'})

    def create(self, attributes: Dict[str, Any]) -> CreateResult:
        response = self.call(
            'associate_route_table',
            RouteTableId=attributes['RouteTableId'],
            SubnetId=attributes['SubnetId']
        )
        association_id = response['AssociationId']
        return CreateResult(provider_id=association_id, outputs={'id': association_id})

    def destroy(self, provider_id: str) -> None:
        try:
            self.call('disassociate_route_table', AssociationId=provider_id)
        except ClientError as e:
            if not self.is_not_found(e):
                raise
