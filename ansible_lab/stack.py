"""
CloudFormation side of the AWS lab: the network template, its create-or-update
deployment and the typed read-back of its outputs.
"""

from collections import namedtuple

import yaml
from botocore.exceptions import ClientError
from botocore.exceptions import WaiterError

from ansible_lab import console
from ansible_lab.config import MAX_PARTICIPANTS
from ansible_lab.config import MIN_PARTICIPANTS

StackOutputs = namedtuple("StackOutputs", "vpc_id subnet_id security_group_id")

# OutputKey in the template -> StackOutputs field
OUTPUT_KEYS = {
    "VPCId": "vpc_id",
    "SubnetId": "subnet_id",
    "SecurityGroupId": "security_group_id",
}

USER_DATA = """#!/bin/bash
yum update -y
yum install -y python3 python3-pip
pip3 install ansible

# Create training user
useradd -m -s /bin/bash ansible-user
echo 'ansible-user ALL=(ALL) NOPASSWD:ALL' >> /etc/sudoers

# Setup SSH for training
mkdir -p /home/ansible-user/.ssh
chown ansible-user:ansible-user /home/ansible-user/.ssh
chmod 700 /home/ansible-user/.ssh
"""


def _name_tag(suffix):
    return [{"Key": "Name", "Value": {"Fn::Sub": "${SessionName}-" + suffix}}]


def _ingress(port, description):
    return {
        "IpProtocol": "tcp",
        "FromPort": port,
        "ToPort": port,
        "CidrIp": "0.0.0.0/0",
        "Description": description,
    }


def stack_template(ami):
    """The training network as a CloudFormation template dictionary."""
    return {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": "Secure Ansible Training Environment",
        "Parameters": {
            "ParticipantCount": {
                "Type": "Number",
                "Default": 8,
                "MinValue": MIN_PARTICIPANTS,
                "MaxValue": MAX_PARTICIPANTS,
                "Description": "Number of training participants",
            },
            "InstanceType": {
                "Type": "String",
                "Default": "t3.micro",
                "Description": "EC2 instance type",
            },
            "KeyPairName": {
                "Type": "AWS::EC2::KeyPair::KeyName",
                "Description": "EC2 Key Pair for SSH access",
            },
            "SessionName": {
                "Type": "String",
                "Default": "ansible-fundamentals",
                "Description": "Training session identifier",
            },
        },
        "Resources": {
            "TrainingVPC": {
                "Type": "AWS::EC2::VPC",
                "Properties": {
                    "CidrBlock": "10.0.0.0/16",
                    "EnableDnsHostnames": True,
                    "EnableDnsSupport": True,
                    "Tags": _name_tag("vpc") + [{"Key": "Purpose", "Value": "AnsibleTraining"}],
                },
            },
            "InternetGateway": {
                "Type": "AWS::EC2::InternetGateway",
                "Properties": {"Tags": _name_tag("igw")},
            },
            "AttachGateway": {
                "Type": "AWS::EC2::VPCGatewayAttachment",
                "Properties": {
                    "VpcId": {"Ref": "TrainingVPC"},
                    "InternetGatewayId": {"Ref": "InternetGateway"},
                },
            },
            "PublicSubnet": {
                "Type": "AWS::EC2::Subnet",
                "Properties": {
                    "VpcId": {"Ref": "TrainingVPC"},
                    "CidrBlock": "10.0.1.0/24",
                    "AvailabilityZone": {"Fn::Select": [0, {"Fn::GetAZs": ""}]},
                    "MapPublicIpOnLaunch": True,
                    "Tags": _name_tag("public-subnet"),
                },
            },
            "PublicRouteTable": {
                "Type": "AWS::EC2::RouteTable",
                "Properties": {
                    "VpcId": {"Ref": "TrainingVPC"},
                    "Tags": _name_tag("public-rt"),
                },
            },
            "PublicRoute": {
                "Type": "AWS::EC2::Route",
                "DependsOn": "AttachGateway",
                "Properties": {
                    "RouteTableId": {"Ref": "PublicRouteTable"},
                    "DestinationCidrBlock": "0.0.0.0/0",
                    "GatewayId": {"Ref": "InternetGateway"},
                },
            },
            "SubnetRouteTableAssociation": {
                "Type": "AWS::EC2::SubnetRouteTableAssociation",
                "Properties": {
                    "SubnetId": {"Ref": "PublicSubnet"},
                    "RouteTableId": {"Ref": "PublicRouteTable"},
                },
            },
            "TrainingSecurityGroup": {
                "Type": "AWS::EC2::SecurityGroup",
                "Properties": {
                    "GroupDescription": "Security group for Ansible training",
                    "VpcId": {"Ref": "TrainingVPC"},
                    "SecurityGroupIngress": [
                        _ingress(22, "SSH access"),
                        _ingress(80, "HTTP access"),
                        _ingress(443, "HTTPS access"),
                    ],
                    "Tags": _name_tag("sg"),
                },
            },
            # A group cannot reference itself inline without a circular dependency.
            "TrainingSecurityGroupSelfIngress": {
                "Type": "AWS::EC2::SecurityGroupIngress",
                "Properties": {
                    "GroupId": {"Ref": "TrainingSecurityGroup"},
                    "IpProtocol": "-1",
                    "SourceSecurityGroupId": {"Ref": "TrainingSecurityGroup"},
                    "Description": "All traffic within security group",
                },
            },
            "TrainingLaunchTemplate": {
                "Type": "AWS::EC2::LaunchTemplate",
                "Properties": {
                    "LaunchTemplateName": {"Fn::Sub": "${AWS::StackName}-template"},
                    "LaunchTemplateData": {
                        "ImageId": ami,
                        "InstanceType": {"Ref": "InstanceType"},
                        "KeyName": {"Ref": "KeyPairName"},
                        "NetworkInterfaces": [
                            {
                                "DeviceIndex": 0,
                                "SubnetId": {"Ref": "PublicSubnet"},
                                "Groups": [{"Ref": "TrainingSecurityGroup"}],
                                "AssociatePublicIpAddress": True,
                            }
                        ],
                        "UserData": {"Fn::Base64": USER_DATA},
                    },
                },
            },
        },
        "Outputs": {
            "VPCId": {
                "Description": "VPC ID for the training environment",
                "Value": {"Ref": "TrainingVPC"},
                "Export": {"Name": {"Fn::Sub": "${AWS::StackName}-VPC-ID"}},
            },
            "SecurityGroupId": {
                "Description": "Security Group ID",
                "Value": {"Ref": "TrainingSecurityGroup"},
                "Export": {"Name": {"Fn::Sub": "${AWS::StackName}-SG-ID"}},
            },
            "SubnetId": {
                "Description": "Public Subnet ID",
                "Value": {"Ref": "PublicSubnet"},
                "Export": {"Name": {"Fn::Sub": "${AWS::StackName}-Subnet-ID"}},
            },
        },
    }


def template_body(ami):
    return yaml.safe_dump(stack_template(ami), sort_keys=False)


def stack_parameters(session, instance_type, key_name):
    params = {
        "ParticipantCount": str(session.participants),
        "InstanceType": instance_type,
        "KeyPairName": key_name,
        "SessionName": session.name,
    }
    return [{"ParameterKey": k, "ParameterValue": v} for k, v in params.items()]


def _stack_exists(cfn_client, stack_name):
    try:
        resp = cfn_client.describe_stacks(StackName=stack_name)
    except ClientError as e:
        err = e.response["Error"]
        if err["Code"] == "ValidationError" and "does not exist" in err.get("Message", ""):
            return False
        raise RuntimeError("describe_stacks failed: %s" % e)
    stacks = resp.get("Stacks", [])
    return bool(stacks) and stacks[0]["StackStatus"] != "DELETE_COMPLETE"


def deploy_stack(cfn_client, stack_name, body, parameters):
    """
    Create the stack, or update it when it already exists, and block until
    CloudFormation reports completion. Any failure aborts without rollback
    of resources created outside the stack.
    """
    console.step("🚀 Deploying AWS Infrastructure...")
    console.dry(f"Would deploy CloudFormation stack {stack_name}")
    if console.DRY_RUN:
        return
    kwargs = {
        "StackName": stack_name,
        "TemplateBody": body,
        "Parameters": parameters,
        "Capabilities": ["CAPABILITY_IAM"],
    }
    if _stack_exists(cfn_client, stack_name):
        console.log(f"Updating existing stack {stack_name}")
        try:
            cfn_client.update_stack(**kwargs)
        except ClientError as e:
            if "No updates are to be performed" in e.response["Error"].get("Message", ""):
                console.ok("✅ Infrastructure already up to date")
                return
            raise RuntimeError("update_stack failed: %s" % e)
        waiter_name = "stack_update_complete"
    else:
        console.log(f"Creating stack {stack_name}")
        try:
            cfn_client.create_stack(**kwargs)
        except ClientError as e:
            raise RuntimeError("create_stack failed: %s" % e)
        waiter_name = "stack_create_complete"

    try:
        cfn_client.get_waiter(waiter_name).wait(StackName=stack_name)
    except WaiterError as e:
        raise RuntimeError("Infrastructure deployment failed: %s" % e)
    console.ok("✅ Infrastructure deployed successfully!")


def read_stack_outputs(cfn_client, stack_name):
    console.dry(f"Would read outputs of stack {stack_name}")
    if console.DRY_RUN:
        return StackOutputs("vpc-dryrun", "subnet-dryrun", "sg-dryrun")
    try:
        resp = cfn_client.describe_stacks(StackName=stack_name)
    except ClientError as e:
        raise RuntimeError("describe_stacks failed: %s" % e)
    outputs = {}
    for o in resp["Stacks"][0].get("Outputs", []):
        outputs[o["OutputKey"]] = o["OutputValue"]
    missing = [k for k in OUTPUT_KEYS if not outputs.get(k)]
    if missing:
        raise RuntimeError(
            "Stack %s is missing outputs: %s" % (stack_name, ", ".join(missing))
        )
    values = {field: outputs[key] for key, field in OUTPUT_KEYS.items()}
    result = StackOutputs(**values)
    console.log(f"Stack outputs: {result}")
    return result
