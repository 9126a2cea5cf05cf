"""
Fixed-structure lab files: Ansible inventories, the load balancer's nginx
config, the connectivity-check playbook and a default Compose file.

Every builder is pure: the same arguments always produce the same text.
"""

import os

import yaml

from ansible_lab import console

LAB_DOMAIN = "ansible.lab"

LAB_GROUPS = {
    "webservers": ["web1", "web2"],
    "databases": ["db1"],
    "loadbalancers": ["lb1"],
}

COMMON_VARS = {
    "ansible_python_interpreter": "/usr/bin/python3",
    "ansible_ssh_common_args": "-o StrictHostKeyChecking=no",
}


def dump_yaml(data):
    return yaml.safe_dump(
        data, sort_keys=False, default_flow_style=False, explicit_start=True
    )


def write_text(path, text):
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    console.log(f"Wrote {path}")
    return path


# =========================
# Local container lab
# =========================


def lab_inventory(groups=None, user="root"):
    groups = groups or LAB_GROUPS
    children = {}
    for group, nodes in groups.items():
        hosts = {}
        for node in nodes:
            hosts[f"{node}.{LAB_DOMAIN}"] = {
                "ansible_host": node,
                "ansible_user": user,
            }
        children[group] = {"hosts": hosts}
    return dump_yaml({"all": {"children": children, "vars": dict(COMMON_VARS)}})


def nginx_config(backends=("web1", "web2"), port=80):
    servers = "".join(f"    server {b}:80;\n" for b in backends)
    return (
        "upstream webservers {\n"
        f"{servers}"
        "}\n"
        "\n"
        "server {\n"
        f"    listen {port};\n"
        "    server_name localhost;\n"
        "\n"
        "    location / {\n"
        "        proxy_pass http://webservers;\n"
        "        proxy_set_header Host $host;\n"
        "        proxy_set_header X-Real-IP $remote_addr;\n"
        "    }\n"
        "}\n"
    )


def test_playbook():
    play = {
        "name": "Test lab environment connectivity",
        "hosts": "all",
        "gather_facts": False,
        "tasks": [
            {"name": "Ping all hosts", "ansible.builtin.ping": None},
            {
                "name": "Check Python availability",
                "ansible.builtin.command": "python3 --version",
                "register": "python_version",
                "changed_when": False,
            },
            {
                "name": "Display Python version",
                "ansible.builtin.debug": {
                    "msg": "Python version on {{ inventory_hostname }}: {{ python_version.stdout }}"
                },
            },
        ],
    }
    return dump_yaml([play])


_NODE_BOOTSTRAP = (
    "apt-get update"
    " && DEBIAN_FRONTEND=noninteractive apt-get install -y openssh-server python3"
    " && mkdir -p /run/sshd /root/.ssh"
    " && cp /tmp/lab_key.pub /root/.ssh/authorized_keys"
    " && chmod 600 /root/.ssh/authorized_keys"
    " && exec /usr/sbin/sshd -D"
)


def compose_file(lab_cfg):
    """Default Compose project: one control container, two web nodes, a database and nginx."""
    services = {
        lab_cfg["control_container"]: {
            "container_name": lab_cfg["control_container"],
            "image": lab_cfg["control_image"],
            "command": ["sleep", "infinity"],
            "volumes": [
                "./inventory:/home/runner/inventory",
                "./playbooks:/home/runner/playbooks",
                "./scenarios:/home/runner/scenarios",
                "./ssh-keys:/home/runner/.ssh",
            ],
            "ports": ["%d:22" % lab_cfg["control_ssh_port"]],
        },
    }
    for node in ("web1", "web2", "db1"):
        services[node] = {
            "container_name": node,
            "hostname": node,
            "image": lab_cfg["node_image"],
            "command": ["bash", "-c", _NODE_BOOTSTRAP],
            "volumes": ["./ssh-keys/id_rsa.pub:/tmp/lab_key.pub:ro"],
        }
    services["lb1"] = {
        "container_name": "lb1",
        "hostname": "lb1",
        "image": lab_cfg["lb_image"],
        "volumes": ["./nginx-config/default.conf:/etc/nginx/conf.d/default.conf:ro"],
        "ports": ["%d:80" % lab_cfg["lb_http_port"]],
        "depends_on": ["web1", "web2"],
    }
    return yaml.safe_dump({"services": services}, sort_keys=False)


def write_lab_files(root, lab_cfg):
    """Write inventory, nginx config and playbook; the Compose file only when absent."""
    write_text(os.path.join(root, lab_cfg["inventory_file"]), lab_inventory())
    write_text(os.path.join(root, lab_cfg["nginx_file"]), nginx_config())
    write_text(os.path.join(root, lab_cfg["playbook_file"]), test_playbook())
    compose = os.path.join(root, lab_cfg["compose_file"])
    if os.path.exists(compose):
        console.log(f"Keeping existing {compose}")
    else:
        write_text(compose, compose_file(lab_cfg))


# =========================
# AWS training session
# =========================


def aws_inventory(control, managed, key_file, user="ec2-user"):
    """
    control is an Instance, managed a list of Instances in node order.
    Managed nodes are named node-1..node-N after their position.
    """
    def host(inst):
        return {
            "ansible_host": inst.public_ip,
            "ansible_user": user,
            "ansible_ssh_private_key_file": key_file,
        }

    managed_hosts = {}
    for i, inst in enumerate(managed, start=1):
        managed_hosts[f"node-{i}"] = host(inst)
    struct = {
        "all": {
            "children": {
                "control": {"hosts": {"control-node": host(control)}},
                "managed": {"hosts": managed_hosts},
            },
            "vars": {
                "ansible_ssh_common_args": COMMON_VARS["ansible_ssh_common_args"],
                "ansible_python_interpreter": COMMON_VARS["ansible_python_interpreter"],
            },
        }
    }
    return dump_yaml(struct)
