import re
from collections import namedtuple
from datetime import datetime

# Stack names allow letters, digits and hyphens and must start with a letter.
_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")
# Stack names are capped at 128 characters; "ansible-training-" and "-<session_id>" take 33.
MAX_NAME_LENGTH = 128 - 33


class Session(namedtuple("Session", "name session_id region participants")):
    """One training session. Every AWS name used by the run derives from it."""

    __slots__ = ()

    @property
    def stack_name(self):
        return f"ansible-training-{self.name}-{self.session_id}"

    @property
    def key_name(self):
        return f"ansible-training-{self.session_id}"

    @property
    def key_file(self):
        return f"{self.key_name}.pem"


def new_session(name, region, participants, now=None):
    if not _NAME_RE.match(name or ""):
        raise SystemExit(
            "Session name '%s' must start with a letter and contain only letters, digits and '-'"
            % name
        )
    if len(name) > MAX_NAME_LENGTH:
        raise SystemExit(
            "Session name is %d characters long, the limit is %d" % (len(name), MAX_NAME_LENGTH)
        )
    if not region:
        raise SystemExit("AWS region is required")
    now = now or datetime.now()
    return Session(name, now.strftime("%Y%m%d-%H%M%S"), region, participants)
