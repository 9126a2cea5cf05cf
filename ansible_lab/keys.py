import os

from botocore.exceptions import ClientError

from ansible_lab import console
from ansible_lab import shell


def ensure_local_keypair(key_path):
    """
    Generate an RSA key pair at key_path unless one is already there.

    Returns True when a new key was generated.
    """
    if os.path.exists(key_path):
        console.log(f"SSH key {key_path} already present")
        return False
    console.say("🔑 Generating SSH keys for lab...")
    parent = os.path.dirname(key_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    shell.run(["ssh-keygen", "-t", "rsa", "-N", "", "-f", key_path])
    console.ok("✅ SSH keys generated")
    return True


def _key_pair_exists(ec2_client, key_name):
    try:
        ec2_client.describe_key_pairs(KeyNames=[key_name])
    except ClientError as e:
        if e.response["Error"]["Code"] == "InvalidKeyPair.NotFound":
            return False
        raise RuntimeError("describe_key_pairs failed: %s" % e)
    return True


def _write_private_key(path, material):
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(material)
        if not material.endswith("\n"):
            f.write("\n")
    # O_CREAT mode does not apply to a file that already existed
    os.chmod(path, 0o600)


def ensure_cloud_keypair(ec2_client, key_name, key_path):
    """
    Make sure an EC2 key pair named key_name exists.

    A new key pair's private material is saved to key_path with mode 0600.
    An existing key pair is left alone; its material cannot be fetched again.
    Returns True when the key pair was created.
    """
    console.step("🔑 Checking SSH Key Pair...")
    console.dry(f"Would create EC2 key pair {key_name} and save it to {key_path}")
    if console.DRY_RUN:
        return True

    if _key_pair_exists(ec2_client, key_name):
        console.warn(f"⚠️ Key pair already exists: {key_name}")
        if not os.path.exists(key_path):
            console.warn(f"⚠️ Private key {key_path} not found locally, SSH access needs another copy")
        return False

    console.say(f"Creating new key pair: {key_name}")
    try:
        resp = ec2_client.create_key_pair(KeyName=key_name)
    except ClientError as e:
        raise RuntimeError("create_key_pair failed: %s" % e)
    _write_private_key(key_path, resp["KeyMaterial"])
    console.ok(f"✅ Key pair created: {key_path}")
    return True
