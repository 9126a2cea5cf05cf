import copy

import yaml

DEFAULTS = {
    "lab": {
        "directories": ["ssh-keys", "playbooks", "inventory", "scenarios", "nginx-config"],
        "key_file": "ssh-keys/id_rsa",
        "inventory_file": "inventory/hosts.yml",
        "nginx_file": "nginx-config/default.conf",
        "playbook_file": "playbooks/test-connection.yml",
        "compose_file": "docker-compose.yml",
        "control_container": "ansible-control",
        "control_inventory": "/home/runner/inventory/hosts.yml",
        "control_playbook": "/home/runner/playbooks/test-connection.yml",
        "settle_seconds": 30,
        "control_ssh_port": 2200,
        "lb_http_port": 8081,
        "control_image": "quay.io/ansible/creator-ee:latest",
        "node_image": "ubuntu:22.04",
        "lb_image": "nginx:alpine",
    },
    "aws": {
        "session_name": "ansible-fundamentals",
        "region": "eu-west-1",
        "participants": 8,
        "instance_type": "t3.micro",
        # Amazon Linux 2, update as needed
        "ami": "ami-0c02fb55956c7d316",
        "ssh_user": "ec2-user",
        "inventory_file": "inventory/aws-hosts.yml",
        "playbook_file": "playbooks/test-connection.yml",
        "report_file": "session-info.txt",
    },
}

# Bounds of the ParticipantCount stack parameter.
MIN_PARTICIPANTS = 1
MAX_PARTICIPANTS = 20


def _load_yaml(path):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def merge(base, override):
    """Overlay a {section: {key: value}} mapping on top of base, rejecting unknown names."""
    cfg = copy.deepcopy(base)
    if not isinstance(override, dict):
        raise SystemExit("config file must contain a mapping of sections")
    for section, values in override.items():
        if section not in cfg:
            raise SystemExit("Unknown config section '%s'" % section)
        if values is None:
            continue
        if not isinstance(values, dict):
            raise SystemExit("Config section '%s' must be a mapping" % section)
        for k, v in values.items():
            if k not in cfg[section]:
                raise SystemExit("Unknown key '%s' in config section '%s'" % (k, section))
            cfg[section][k] = v
    return cfg


def load_config(path=None):
    if not path:
        return copy.deepcopy(DEFAULTS)
    try:
        data = _load_yaml(path)
    except OSError as e:
        raise SystemExit("Cannot read config file %s: %s" % (path, e))
    except yaml.YAMLError as e:
        raise SystemExit("Invalid YAML in %s: %s" % (path, e))
    return merge(DEFAULTS, data)


def parse_participants(value):
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise SystemExit("Number of participants must be an integer, got '%s'" % value)
    if not MIN_PARTICIPANTS <= count <= MAX_PARTICIPANTS:
        raise SystemExit(
            "Number of participants must be between %d and %d"
            % (MIN_PARTICIPANTS, MAX_PARTICIPANTS)
        )
    return count
