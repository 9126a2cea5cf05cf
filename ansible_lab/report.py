import os

from ansible_lab import emit


def session_report(
    session, outputs, control, managed, inventory_file, playbook_file, user="ec2-user"
):
    """
    Human-readable summary of a training session. Teardown is left to the
    operator, so the report carries the exact cleanup commands.
    """
    ids = " ".join([control.instance_id] + [m.instance_id for m in managed])
    lines = [
        "🚀 Ansible Training Session Information",
        "",
        f"Session: {session.name}",
        f"Session ID: {session.session_id}",
        f"Stack Name: {session.stack_name}",
        f"Region: {session.region}",
        f"Key Pair: {session.key_name}",
        "",
        "📊 Infrastructure:",
        f"VPC ID: {outputs.vpc_id}",
        f"Subnet ID: {outputs.subnet_id}",
        f"Security Group: {outputs.security_group_id}",
        "",
        "🖥️ Control Node:",
        f"Instance ID: {control.instance_id}",
        f"Public IP: {control.public_ip}",
        f"SSH Command: ssh -i {session.key_file} {user}@{control.public_ip}",
        "",
        f"🖥️ Managed Nodes ({len(managed)}):",
    ]
    for i, inst in enumerate(managed, start=1):
        lines.append(f"node-{i}: {inst.instance_id} {inst.public_ip}")
    lines += [
        "",
        "🔧 Lab Commands:",
        "# Test connectivity",
        f"ansible all -i {inventory_file} -m ping",
        "",
        "# Run sample playbook",
        f"ansible-playbook -i {inventory_file} {playbook_file}",
        "",
        "💰 Cleanup:",
        "# Terminate the training instances (they are not part of the stack)",
        f"aws ec2 terminate-instances --instance-ids {ids} --region {session.region}",
        f"aws ec2 wait instance-terminated --instance-ids {ids} --region {session.region}",
        "",
        "# Delete stack when training is complete",
        f"aws cloudformation delete-stack --stack-name {session.stack_name} --region {session.region}",
        "",
        "# Delete key pair",
        f"aws ec2 delete-key-pair --key-name {session.key_name} --region {session.region}",
        f"rm {session.key_file}",
    ]
    return "\n".join(lines) + "\n"


def write_session_files(root, aws_cfg, session, outputs, control, managed):
    """Write the inventory and the session report. Returns (inventory_path, report_path, report_text)."""
    inventory_path = os.path.join(root, aws_cfg["inventory_file"])
    emit.write_text(
        inventory_path,
        emit.aws_inventory(control, managed, session.key_file, user=aws_cfg["ssh_user"]),
    )
    text = session_report(
        session,
        outputs,
        control,
        managed,
        aws_cfg["inventory_file"],
        aws_cfg["playbook_file"],
        user=aws_cfg["ssh_user"],
    )
    report_path = os.path.join(root, aws_cfg["report_file"])
    emit.write_text(report_path, text)
    return inventory_path, report_path, text
