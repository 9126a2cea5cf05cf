#!/usr/bin/env python3
# Plain Python 3, minimal imports, no type annotations.
"""
AWS training lab for a multi-participant Ansible session.

Stages run once, in order, each feeding the next:
key pair -> stack deploy -> stack outputs -> instances -> wait -> public IPs
-> inventory and session report. Nothing is torn down automatically; the
session report lists the cleanup commands.
"""

import argparse
import os
import sys
from collections import namedtuple

import boto3
from botocore.exceptions import BotoCoreError

from ansible_lab import config
from ansible_lab import console
from ansible_lab import emit
from ansible_lab import instances
from ansible_lab import keys
from ansible_lab import report
from ansible_lab import shell
from ansible_lab import stack
from ansible_lab.session import new_session

REQUIRED_TOOLS = ("ansible-playbook",)

LabResult = namedtuple("LabResult", "session outputs control managed inventory_path report_path")


def get_session(region):
    """
    Return a boto3.Session bound to the given region.
    Credentials come from the usual chain (profile, environment, instance role).
    """
    return boto3.Session(region_name=region)


def check_credentials(environ=None):
    environ = os.environ if environ is None else environ
    if environ.get("AWS_PROFILE") or environ.get("AWS_ACCESS_KEY_ID"):
        return
    console.error("❌ Error: AWS credentials not configured")
    console.say("Please configure AWS credentials using one of:")
    console.say("  1. aws configure")
    console.say("  2. AWS_PROFILE environment variable")
    console.say("  3. AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY environment variables")
    sys.exit(1)


def check_tools():
    missing = shell.missing_commands(REQUIRED_TOOLS)
    if missing:
        for name in missing:
            console.error(f"❌ {name} not installed")
        sys.exit(1)


def prompt(text, default):
    try:
        answer = input(f"{text} (default: {default}): ").strip()
    except EOFError:
        # stdin closed or not a terminal
        console.say("")
        return default
    return answer or default


def gather_session(args, aws_cfg, now=None):
    """Build the Session from flags, falling back to interactive prompts."""
    console.step("📋 Training Session Configuration")
    name = args.session_name or prompt("Training session name", aws_cfg["session_name"])
    region = args.region or prompt("AWS Region", aws_cfg["region"])
    if args.participants is not None:
        count = args.participants
    else:
        count = prompt("Number of participants", aws_cfg["participants"])
    session = new_session(name, region, config.parse_participants(count), now=now)

    console.warn("📊 Session Details:")
    console.say(f"  Session: {session.name}")
    console.say(f"  Region: {session.region}")
    console.say(f"  Participants: {session.participants}")
    console.say(f"  Stack: {session.stack_name}")
    console.say("")
    return session


def provision(session, aws_cfg, ec2_client, cfn_client, root):
    """Run every AWS stage for the session and write the local artifacts."""
    key_path = os.path.join(root, session.key_file)
    keys.ensure_cloud_keypair(ec2_client, session.key_name, key_path)

    stack.deploy_stack(
        cfn_client,
        session.stack_name,
        stack.template_body(aws_cfg["ami"]),
        stack.stack_parameters(session, aws_cfg["instance_type"], session.key_name),
    )
    # Instance calls need the subnet and security group from the finished stack.
    outputs = stack.read_stack_outputs(cfn_client, session.stack_name)

    control, managed = instances.launch_instances(
        ec2_client,
        session,
        outputs,
        aws_cfg["instance_type"],
        aws_cfg["ami"],
        session.key_name,
    )
    everything = [control] + managed
    instances.wait_until_running(ec2_client, [i.instance_id for i in everything])
    resolved = instances.resolve_public_ips(ec2_client, everything)
    control, managed = resolved[0], resolved[1:]

    console.step("📝 Creating Ansible inventory...")
    playbook_path = os.path.join(root, aws_cfg["playbook_file"])
    if not os.path.exists(playbook_path):
        emit.write_text(playbook_path, emit.test_playbook())
    inventory_path, report_path, text = report.write_session_files(
        root, aws_cfg, session, outputs, control, managed
    )

    console.ok("✅ AWS Lab Environment Ready!")
    console.say("")
    console.step("📋 Session Summary:")
    console.say(text)
    console.warn(f"⚠️ Important: Save the {aws_cfg['report_file']} file for cleanup instructions")
    console.ok("🎓 Ready to start Ansible training!")
    return LabResult(session, outputs, control, managed, inventory_path, report_path)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Provision an AWS Ansible training environment for a session."
    )
    parser.add_argument("-V", "--verbose", action="store_true", default=False, help="Verbose trace mode")
    parser.add_argument("--dry-run", action="store_true", default=False, help="Print what would be done without doing it")
    parser.add_argument("--config", help="Path to a YAML file overriding the 'aws' defaults")
    parser.add_argument("--dir", default=".", help="Where to write the key, inventory and session report")
    parser.add_argument("--session-name", help="Training session name (skips the prompt)")
    parser.add_argument("--region", help="AWS region (skips the prompt)")
    parser.add_argument("--participants", help="Number of participants (skips the prompt)")
    args = parser.parse_args(argv)
    console.configure(verbose=args.verbose, dry_run=args.dry_run)

    console.say("🔧 Setting up Secure AWS Ansible Training Environment...")
    check_credentials()
    check_tools()

    cfg = config.load_config(args.config)
    aws_cfg = cfg["aws"]
    session = gather_session(args, aws_cfg)
    root = os.path.abspath(args.dir)
    os.makedirs(root, exist_ok=True)

    try:
        boto_session = get_session(session.region)
        ec2_client = boto_session.client("ec2")
        cfn_client = boto_session.client("cloudformation")
        provision(session, aws_cfg, ec2_client, cfn_client, root)
    except (RuntimeError, BotoCoreError) as e:
        console.error(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
