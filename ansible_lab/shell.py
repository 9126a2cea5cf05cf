# Plain Python 3, minimal imports, no type annotations.

import shlex
import shutil
import subprocess

from ansible_lab import console


def run(cmd, check=True, capture=False, cwd=None):
    """
    Run an external command given as an argument list.

    In dry-run mode the command is only printed and None is returned.
    On failure the command and its output are printed and CalledProcessError
    is raised, unless check=False.
    """
    line = shlex.join(cmd)
    console.dry(line)
    if console.DRY_RUN:
        return None
    console.log(line)
    res = subprocess.run(
        cmd,
        cwd=cwd,
        stdout=subprocess.PIPE if capture else None,
        stderr=subprocess.STDOUT if capture else None,
        text=True,
    )
    if capture and res.stdout:
        console.log(res.stdout.rstrip())
    if check and res.returncode != 0:
        console.error("Error while running: %s" % line)
        if res.stdout:
            console.error(res.stdout.rstrip())
        raise subprocess.CalledProcessError(res.returncode, cmd, output=res.stdout)
    return res


def succeeds(cmd, cwd=None):
    """True when the command can be started and exits 0. Output is discarded."""
    try:
        res = subprocess.run(
            cmd, cwd=cwd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
    except OSError:
        return False
    return res.returncode == 0


def command_exists(name):
    return shutil.which(name) is not None


def missing_commands(names):
    return [n for n in names if not command_exists(n)]


def compose_command():
    """
    Pick the Docker Compose invocation that works on this host.

    The standalone 'docker-compose' binary is preferred when it runs; a broken
    legacy install falls through to the 'docker compose' plugin. Returns None
    when neither works.
    """
    if console.DRY_RUN:
        console.dry("Would detect the Docker Compose command, assuming 'docker compose'")
        return ["docker", "compose"]
    if command_exists("docker-compose") and succeeds(["docker-compose", "version"]):
        return ["docker-compose"]
    if command_exists("docker") and succeeds(["docker", "compose", "version"]):
        return ["docker", "compose"]
    return None
