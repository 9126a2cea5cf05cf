from collections import namedtuple

from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from botocore.exceptions import WaiterError

from ansible_lab import console

Instance = namedtuple("Instance", "instance_id role name public_ip")

ROLE_CONTROL = "control"
ROLE_MANAGED = "managed"


def _tag_specs(name, role, session_id):
    tags = {"Name": name, "Role": role, "Session": session_id}
    return [
        {
            "ResourceType": "instance",
            "Tags": [{"Key": k, "Value": v} for k, v in tags.items()],
        }
    ]


def run_instance(ec2_client, cfg, name, role, session_id, index=0):
    """
    Launch one instance into the stack's subnet and security group.

    cfg keys: ami, instance_type, key_name, subnet_id, security_group_id.
    Returns an Instance without a public IP; it is only known once running.
    """
    console.dry(
        f"Would launch {role} instance {name} "
        f"(AMI={cfg['ami']}, type={cfg['instance_type']})"
    )
    if console.DRY_RUN:
        return Instance(f"i-dryrun-{index:05d}", role, name, None)

    console.log(f"Launching {role} instance {name}")
    try:
        resp = ec2_client.run_instances(
            ImageId=cfg["ami"],
            InstanceType=cfg["instance_type"],
            KeyName=cfg["key_name"],
            MinCount=1,
            MaxCount=1,
            SecurityGroupIds=[cfg["security_group_id"]],
            SubnetId=cfg["subnet_id"],
            TagSpecifications=_tag_specs(name, role, session_id),
        )
    except ClientError as e:
        raise RuntimeError("run_instances failed for %s: %s" % (name, e))
    return Instance(resp["Instances"][0]["InstanceId"], role, name, None)


def launch_instances(ec2_client, session, outputs, instance_type, ami, key_name):
    """
    Create the control node and one managed node per participant, one call at
    a time. Returns (control, [managed...]).

    A failed call aborts the run; instances launched before it keep running
    and are listed so they can be cleaned up by hand.
    """
    console.step("🖥️ Creating training instances...")
    cfg = {
        "ami": ami,
        "instance_type": instance_type,
        "key_name": key_name,
        "subnet_id": outputs.subnet_id,
        "security_group_id": outputs.security_group_id,
    }
    launched = []
    try:
        console.say("Creating Ansible control node...")
        control = run_instance(
            ec2_client, cfg, f"{session.name}-control", ROLE_CONTROL, session.session_id
        )
        launched.append(control)
        managed = []
        for i in range(1, session.participants + 1):
            console.say(f"Creating managed node {i}...")
            inst = run_instance(
                ec2_client,
                cfg,
                f"{session.name}-node-{i}",
                ROLE_MANAGED,
                session.session_id,
                index=i,
            )
            launched.append(inst)
            managed.append(inst)
    except (RuntimeError, BotoCoreError):
        if launched:
            console.error(
                "Instances left running: %s" % " ".join(i.instance_id for i in launched)
            )
        raise
    return control, managed


def wait_until_running(ec2_client, instance_ids):
    """Block on the instance_running waiter; its own delay and attempt limits apply."""
    console.warn("⏳ Waiting for instances to be ready...")
    console.dry(f"Would wait for {len(instance_ids)} instances to be running")
    if console.DRY_RUN:
        return
    try:
        ec2_client.get_waiter("instance_running").wait(InstanceIds=list(instance_ids))
    except WaiterError as e:
        raise RuntimeError("Waiting for instances failed: %s" % e)


def resolve_public_ips(ec2_client, instances):
    """Return the same instances, in the same order, with public_ip filled in."""
    console.step("📊 Retrieving instance information...")
    if console.DRY_RUN:
        return [
            inst._replace(public_ip=f"203.0.113.{n}")
            for n, inst in enumerate(instances, start=1)
        ]
    ids = [inst.instance_id for inst in instances]
    try:
        resp = ec2_client.describe_instances(InstanceIds=ids)
    except ClientError as e:
        raise RuntimeError("describe_instances failed: %s" % e)
    ips = {}
    for r in resp.get("Reservations", []):
        for i in r.get("Instances", []):
            ips[i["InstanceId"]] = i.get("PublicIpAddress")
    out = []
    for inst in instances:
        ip = ips.get(inst.instance_id)
        if not ip:
            raise RuntimeError("Instance %s has no public IP address" % inst.instance_id)
        out.append(inst._replace(public_ip=ip))
    return out
