import base64

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import ANY, Stubber

from netstack_deploy.provisioners import (
    AWSTransport,
    AutoscalingGroupProvisioner,
    InternetGatewayProvisioner,
    LaunchTemplateProvisioner,
    LoadBalancerProvisioner,
    NetworkProvisioner,
    SecurityGroupRuleProvisioner,
    SubnetProvisioner,
)
from netstack_deploy.resources.models import ResourceKind
from netstack_deploy.utils.aws_client import AWSClientManager
from netstack_deploy.utils.errors import CreateFailedError, DestroyFailedError, ErrorCategory
from netstack_deploy.utils.retry import RetryStrategy

ALB_ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/web-app-lb/50dc6c495c0c9188"
ALB_DNS = "web-app-lb-1234567890.us-east-1.elb.amazonaws.com"


@pytest.fixture
def boto_session():
    return boto3.Session(
        aws_access_key_id='testing',
        aws_secret_access_key='testing',
        region_name='us-east-1'
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def retry(sleeps):
    return RetryStrategy(jitter=False, sleep=sleeps.append)


@pytest.fixture
def stubbed(boto_session, retry):
    """Factory fixture: build a provisioner with a stubbed client."""

    def _build(provisioner_class):
        client = boto_session.client(provisioner_class.service_name)
        return provisioner_class(boto_session, client=client, retry_strategy=retry), Stubber(client)

    return _build


def test_network_create_enables_dns_hostnames(stubbed) -> None:
    provisioner, stubber = stubbed(NetworkProvisioner)
    stubber.add_response(
        'create_vpc',
        {'Vpc': {'VpcId': 'vpc-123', 'CidrBlock': '10.0.0.0/16'}},
        {
            'CidrBlock': '10.0.0.0/16',
            'TagSpecifications': [{'ResourceType': 'vpc', 'Tags': [{'Key': 'Name', 'Value': 'WebAppVPC'}]}],
        }
    )
    stubber.add_response(
        'modify_vpc_attribute', {}, {'VpcId': 'vpc-123', 'EnableDnsHostnames': {'Value': True}}
    )

    with stubber:
        result = provisioner.create({'CidrBlock': '10.0.0.0/16', 'Name': 'WebAppVPC'})

    assert result.provider_id == 'vpc-123'
    assert result.outputs == {'id': 'vpc-123', 'cidr_block': '10.0.0.0/16'}
    stubber.assert_no_pending_responses()


def test_network_create_cleans_up_when_dns_setting_fails(stubbed) -> None:
    provisioner, stubber = stubbed(NetworkProvisioner)
    stubber.add_response('create_vpc', {'Vpc': {'VpcId': 'vpc-123'}}, {'CidrBlock': '10.0.0.0/16'})
    stubber.add_client_error(
        'modify_vpc_attribute', service_error_code='UnauthorizedOperation', http_status_code=403
    )
    stubber.add_response('delete_vpc', {}, {'VpcId': 'vpc-123'})

    with stubber, pytest.raises(ClientError):
        provisioner.create({'CidrBlock': '10.0.0.0/16'})
    stubber.assert_no_pending_responses()


def test_subnet_create_cleans_up_when_public_ip_setting_fails(stubbed) -> None:
    provisioner, stubber = stubbed(SubnetProvisioner)
    stubber.add_response(
        'create_subnet',
        {'Subnet': {'SubnetId': 'subnet-1', 'CidrBlock': '10.0.1.0/24'}},
        {'VpcId': 'vpc-123', 'CidrBlock': '10.0.1.0/24'}
    )
    stubber.add_client_error(
        'modify_subnet_attribute', service_error_code='UnauthorizedOperation', http_status_code=403
    )
    stubber.add_response('delete_subnet', {}, {'SubnetId': 'subnet-1'})

    with stubber, pytest.raises(ClientError):
        provisioner.create({'VpcId': 'vpc-123', 'CidrBlock': '10.0.1.0/24', 'MapPublicIpOnLaunch': True})
    stubber.assert_no_pending_responses()


def test_destroy_of_missing_resource_is_a_no_op(stubbed) -> None:
    provisioner, stubber = stubbed(NetworkProvisioner)
    stubber.add_client_error(
        'delete_vpc', service_error_code='InvalidVpcID.NotFound', http_status_code=400
    )

    with stubber:
        provisioner.destroy('vpc-gone')
    stubber.assert_no_pending_responses()


def test_destroy_propagates_other_errors(stubbed) -> None:
    provisioner, stubber = stubbed(NetworkProvisioner)
    stubber.add_client_error(
        'delete_vpc', service_error_code='DependencyViolation', http_status_code=400
    )

    with stubber, pytest.raises(ClientError):
        provisioner.destroy('vpc-123')


def test_throttled_call_is_retried(stubbed, sleeps) -> None:
    provisioner, stubber = stubbed(NetworkProvisioner)
    stubber.add_client_error(
        'delete_vpc', service_error_code='RequestLimitExceeded', http_status_code=503
    )
    stubber.add_response('delete_vpc', {}, {'VpcId': 'vpc-123'})

    with stubber:
        provisioner.destroy('vpc-123')

    assert sleeps == [1.0]
    stubber.assert_no_pending_responses()


def test_internet_gateway_attach_and_detach(stubbed) -> None:
    provisioner, stubber = stubbed(InternetGatewayProvisioner)
    stubber.add_response(
        'create_internet_gateway',
        {'InternetGateway': {'InternetGatewayId': 'igw-1'}},
        {'TagSpecifications': [{'ResourceType': 'internet-gateway', 'Tags': [{'Key': 'Name', 'Value': 'WebAppIGW'}]}]}
    )
    stubber.add_response(
        'attach_internet_gateway', {}, {'InternetGatewayId': 'igw-1', 'VpcId': 'vpc-123'}
    )
    stubber.add_response(
        'describe_internet_gateways',
        {'InternetGateways': [{'InternetGatewayId': 'igw-1', 'Attachments': [{'VpcId': 'vpc-123', 'State': 'available'}]}]},
        {'InternetGatewayIds': ['igw-1']}
    )
    stubber.add_response(
        'detach_internet_gateway', {}, {'InternetGatewayId': 'igw-1', 'VpcId': 'vpc-123'}
    )
    stubber.add_response('delete_internet_gateway', {}, {'InternetGatewayId': 'igw-1'})

    with stubber:
        result = provisioner.create({'VpcId': 'vpc-123', 'Name': 'WebAppIGW'})
        provisioner.destroy(result.provider_id)

    assert result.outputs == {'id': 'igw-1', 'vpc_id': 'vpc-123'}
    stubber.assert_no_pending_responses()


def test_ingress_rule_from_source_group(stubbed) -> None:
    provisioner, stubber = stubbed(SecurityGroupRuleProvisioner)
    stubber.add_response(
        'authorize_security_group_ingress',
        {'Return': True, 'SecurityGroupRules': [{'SecurityGroupRuleId': 'sgr-1'}]},
        {
            'GroupId': 'sg-web',
            'IpPermissions': [{
                'IpProtocol': 'tcp',
                'FromPort': 80,
                'ToPort': 80,
                'UserIdGroupPairs': [{'GroupId': 'sg-alb'}],
            }],
        }
    )

    with stubber:
        result = provisioner.create({'GroupId': 'sg-web', 'Port': 80, 'SourceGroupId': 'sg-alb'})

    assert result.provider_id == 'sgr-1'
    assert result.outputs['direction'] == 'ingress'


def test_duplicate_egress_rule_adopts_existing_rule(stubbed) -> None:
    provisioner, stubber = stubbed(SecurityGroupRuleProvisioner)
    stubber.add_client_error(
        'authorize_security_group_egress',
        service_error_code='InvalidPermission.Duplicate',
        http_status_code=400
    )
    stubber.add_response(
        'describe_security_group_rules',
        {'SecurityGroupRules': [{
            'SecurityGroupRuleId': 'sgr-default',
            'GroupId': 'sg-web',
            'IsEgress': True,
            'IpProtocol': '-1',
            'FromPort': -1,
            'ToPort': -1,
            'CidrIpv4': '0.0.0.0/0',
        }]},
        {'Filters': [{'Name': 'group-id', 'Values': ['sg-web']}]}
    )

    with stubber:
        result = provisioner.create({
            'GroupId': 'sg-web', 'Direction': 'egress', 'IpProtocol': '-1', 'CidrIp': '0.0.0.0/0'
        })

    assert result.provider_id == 'sgr-default'
    assert result.outputs['direction'] == 'egress'


def test_rule_direction_must_be_known(stubbed) -> None:
    provisioner, _ = stubbed(SecurityGroupRuleProvisioner)
    with pytest.raises(ValueError, match='Direction'):
        provisioner.create({'GroupId': 'sg-web', 'Direction': 'sideways', 'Port': 80})


def test_load_balancer_reports_dns_name(stubbed) -> None:
    provisioner, stubber = stubbed(LoadBalancerProvisioner)
    stubber.add_response(
        'create_load_balancer',
        {'LoadBalancers': [{
            'LoadBalancerArn': ALB_ARN,
            'DNSName': ALB_DNS,
            'CanonicalHostedZoneId': 'Z35SXDOTRQ7X7K',
        }]},
        {
            'Name': 'web-app-lb',
            'Subnets': ['subnet-1', 'subnet-2'],
            'SecurityGroups': ['sg-alb'],
            'Scheme': 'internet-facing',
            'Type': 'application',
        }
    )

    with stubber:
        result = provisioner.create({
            'LoadBalancerName': 'web-app-lb',
            'Subnets': ['subnet-1', 'subnet-2'],
            'SecurityGroups': ['sg-alb'],
        })

    assert result.provider_id == ALB_ARN
    assert result.outputs['dns_name'] == ALB_DNS
    assert result.outputs['arn'] == ALB_ARN


def test_launch_template_encodes_user_data(stubbed) -> None:
    provisioner, stubber = stubbed(LaunchTemplateProvisioner)
    user_data = "#!/bin/bash\nyum install -y httpd\n"
    stubber.add_response(
        'create_launch_template',
        {'LaunchTemplate': {
            'LaunchTemplateId': 'lt-1',
            'LaunchTemplateName': 'web-server-template',
            'LatestVersionNumber': 1,
        }},
        {
            'LaunchTemplateName': 'web-server-template',
            'VersionDescription': 'Initial version',
            'LaunchTemplateData': {
                'ImageId': 'ami-0c55b159cbfafe1f0',
                'InstanceType': 't2.micro',
                'SecurityGroupIds': ['sg-web'],
                'UserData': base64.b64encode(user_data.encode('utf-8')).decode('ascii'),
                'TagSpecifications': [{
                    'ResourceType': 'instance',
                    'Tags': [{'Key': 'Name', 'Value': 'WebServer'}],
                }],
            },
        }
    )

    with stubber:
        result = provisioner.create({
            'LaunchTemplateName': 'web-server-template',
            'ImageId': 'ami-0c55b159cbfafe1f0',
            'SecurityGroupIds': ['sg-web'],
            'UserData': user_data,
            'InstanceTags': {'Name': 'WebServer'},
        })

    assert result.provider_id == 'lt-1'
    assert result.outputs['latest_version'] == 1


def test_autoscaling_group_parameters(stubbed) -> None:
    provisioner, stubber = stubbed(AutoscalingGroupProvisioner)
    stubber.add_response(
        'create_auto_scaling_group',
        {},
        {
            'AutoScalingGroupName': 'web-server-asg',
            'LaunchTemplate': {'LaunchTemplateId': 'lt-1', 'Version': '$Latest'},
            'MinSize': 2,
            'MaxSize': 5,
            'DesiredCapacity': 2,
            'VPCZoneIdentifier': 'subnet-1,subnet-2',
            'TargetGroupARNs': ['arn:tg'],
            'Tags': [{
                'ResourceId': 'web-server-asg',
                'ResourceType': 'auto-scaling-group',
                'Key': 'Name',
                'Value': 'WebServer-ASG',
                'PropagateAtLaunch': True,
            }],
        }
    )

    with stubber:
        result = provisioner.create({
            'AutoScalingGroupName': 'web-server-asg',
            'LaunchTemplateId': 'lt-1',
            'MinSize': 2,
            'MaxSize': 5,
            'DesiredCapacity': 2,
            'Subnets': ['subnet-1', 'subnet-2'],
            'TargetGroupARNs': ['arn:tg'],
            'Name': 'WebServer-ASG',
        })

    assert result.provider_id == 'web-server-asg'


def test_autoscaling_group_missing_on_destroy(stubbed) -> None:
    provisioner, stubber = stubbed(AutoscalingGroupProvisioner)
    stubber.add_client_error(
        'delete_auto_scaling_group',
        service_error_code='ValidationError',
        service_message='AutoScalingGroup name not found - web-server-asg',
        http_status_code=400,
        expected_params={'AutoScalingGroupName': 'web-server-asg', 'ForceDelete': True}
    )

    with stubber:
        provisioner.destroy('web-server-asg')
    stubber.assert_no_pending_responses()


@pytest.fixture
def aws_transport(boto_session, retry):
    manager = AWSClientManager(region='us-east-1')
    manager._session = boto_session
    return AWSTransport(manager, retry_strategy=retry)


def test_transport_shares_one_client_per_service(aws_transport) -> None:
    provisioners = aws_transport.provisioners
    assert set(provisioners) == set(ResourceKind)
    assert provisioners[ResourceKind.NETWORK].client is provisioners[ResourceKind.SUBNET].client
    assert provisioners[ResourceKind.LOAD_BALANCER].client is provisioners[ResourceKind.LISTENER].client


def test_transport_translates_create_errors(aws_transport) -> None:
    stubber = Stubber(aws_transport.provisioners[ResourceKind.NETWORK].client)
    stubber.add_client_error(
        'create_vpc', service_error_code='VpcLimitExceeded', http_status_code=400,
        expected_params={'CidrBlock': ANY}
    )

    with stubber, pytest.raises(CreateFailedError) as exc:
        aws_transport.create(ResourceKind.NETWORK, {'CidrBlock': '10.0.0.0/16'})

    assert exc.value.category == ErrorCategory.RESOURCE_LIMIT
    assert isinstance(exc.value.__cause__, ClientError)


def test_transport_translates_destroy_errors(aws_transport) -> None:
    stubber = Stubber(aws_transport.provisioners[ResourceKind.SUBNET].client)
    stubber.add_client_error(
        'delete_subnet', service_error_code='DependencyViolation', http_status_code=400
    )

    with stubber, pytest.raises(DestroyFailedError, match='subnet-1'):
        aws_transport.destroy(ResourceKind.SUBNET, 'subnet-1')
