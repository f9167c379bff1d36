"""Load-balanced web server stack: VPC, two public subnets, ALB and ASG."""

from netstack_deploy.config.models import Settings, Topology
from netstack_deploy.resources.models import Ref, ResourceKind, ResourceSpec

REGION = "us-east-1"
VPC_CIDR = "10.0.0.0/16"
PUBLIC_SUBNET_1_CIDR = "10.0.1.0/24"
PUBLIC_SUBNET_2_CIDR = "10.0.2.0/24"
AZ_1 = "us-east-1a"
AZ_2 = "us-east-1b"
AMI_ID = "ami-0c55b159cbfafe1f0"  # Amazon Linux 2
INSTANCE_TYPE = "t2.micro"

USER_DATA = """#!/bin/bash
yum update -y
yum install -y httpd
systemctl start httpd
systemctl enable httpd
echo "<h1>Hello from Web Server</h1>" > /var/www/html/index.html
"""


def _spec(name: str, kind: ResourceKind, **attributes) -> ResourceSpec:
    return ResourceSpec(logical_name=name, kind=kind, attributes=attributes)


def webserver_topology(region: str = REGION) -> Topology:
    """Build the web server topology.

    Args:
        region: Region whose ``a`` and ``b`` availability zones host the subnets
    """
    az_1, az_2 = (AZ_1, AZ_2) if region == REGION else (f"{region}a", f"{region}b")

    specs = [
        _spec("web_vpc", ResourceKind.NETWORK,
              CidrBlock=VPC_CIDR, EnableDnsHostnames=True, Name="WebAppVPC"),
        _spec("public_subnet_1", ResourceKind.SUBNET,
              VpcId=Ref("web_vpc"), CidrBlock=PUBLIC_SUBNET_1_CIDR,
              AvailabilityZone=az_1, Name="Public Subnet 1"),
        _spec("public_subnet_2", ResourceKind.SUBNET,
              VpcId=Ref("web_vpc"), CidrBlock=PUBLIC_SUBNET_2_CIDR,
              AvailabilityZone=az_2, Name="Public Subnet 2"),
        _spec("web_igw", ResourceKind.INTERNET_GATEWAY,
              VpcId=Ref("web_vpc"), Name="Web VPC IGW"),
        _spec("public_route_table", ResourceKind.ROUTE_TABLE,
              VpcId=Ref("web_vpc"), Name="Public Route Table",
              Routes=[{"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": Ref("web_igw")}]),
        _spec("public_subnet_1_routes", ResourceKind.ROUTE_TABLE_ASSOCIATION,
              RouteTableId=Ref("public_route_table"), SubnetId=Ref("public_subnet_1")),
        _spec("public_subnet_2_routes", ResourceKind.ROUTE_TABLE_ASSOCIATION,
              RouteTableId=Ref("public_route_table"), SubnetId=Ref("public_subnet_2")),
        _spec("alb_sg", ResourceKind.SECURITY_GROUP,
              GroupName="alb-sg", Description="Security group for application load balancer",
              VpcId=Ref("web_vpc"), Name="ALB SG"),
        _spec("alb_http_ingress", ResourceKind.SECURITY_GROUP_RULE,
              GroupId=Ref("alb_sg"), Direction="ingress", IpProtocol="tcp", Port=80,
              CidrIp="0.0.0.0/0"),
        _spec("web_sg", ResourceKind.SECURITY_GROUP,
              GroupName="web-server-sg", Description="Security group for web servers",
              VpcId=Ref("web_vpc"), Name="Web Server SG"),
        _spec("web_http_from_alb", ResourceKind.SECURITY_GROUP_RULE,
              GroupId=Ref("web_sg"), Direction="ingress", IpProtocol="tcp", Port=80,
              SourceGroupId=Ref("alb_sg")),
        _spec("web_egress_all", ResourceKind.SECURITY_GROUP_RULE,
              GroupId=Ref("web_sg"), Direction="egress", IpProtocol="-1", CidrIp="0.0.0.0/0"),
        _spec("web_alb", ResourceKind.LOAD_BALANCER,
              LoadBalancerName="web-app-lb",
              Subnets=[Ref("public_subnet_1"), Ref("public_subnet_2")],
              SecurityGroups=[Ref("alb_sg")]),
        _spec("web_target_group", ResourceKind.TARGET_GROUP,
              TargetGroupName="web-target-group", Protocol="HTTP", Port=80, VpcId=Ref("web_vpc"),
              HealthCheckPath="/", HealthCheckProtocol="HTTP",
              HealthCheckIntervalSeconds=30, HealthCheckTimeoutSeconds=5,
              HealthyThresholdCount=2, UnhealthyThresholdCount=2),
        _spec("web_listener", ResourceKind.LISTENER,
              LoadBalancerArn=Ref("web_alb", "arn"), Protocol="HTTP", Port=80,
              TargetGroupArn=Ref("web_target_group", "arn")),
        _spec("web_launch_template", ResourceKind.LAUNCH_TEMPLATE,
              LaunchTemplateName="web-server-template", VersionDescription="Initial version",
              ImageId=AMI_ID, InstanceType=INSTANCE_TYPE, SecurityGroupIds=[Ref("web_sg")],
              UserData=USER_DATA, InstanceTags={"Name": "WebServer"}),
        _spec("web_asg", ResourceKind.AUTOSCALING_GROUP,
              AutoScalingGroupName="web-server-asg",
              LaunchTemplateId=Ref("web_launch_template"), LaunchTemplateVersion="$Latest",
              MinSize=2, MaxSize=5, DesiredCapacity=2,
              Subnets=[Ref("public_subnet_1"), Ref("public_subnet_2")],
              TargetGroupARNs=[Ref("web_target_group", "arn")],
              Name="WebServer-ASG"),
    ]

    return Topology(
        name="webserver",
        region=region,
        settings=Settings(),
        specs=specs,
        outputs={"alb_dns_name": Ref("web_alb", "dns_name")},
    )
