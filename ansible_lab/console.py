# Plain Python 3, minimal imports, no type annotations.

import logging

from rich.console import Console

VERBOSE = False
DRY_RUN = False

_out = Console(highlight=False)
_err = Console(stderr=True, highlight=False)


def configure(verbose=False, dry_run=False):
    global VERBOSE, DRY_RUN
    VERBOSE = verbose
    DRY_RUN = dry_run
    for name in ("boto3", "botocore"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def log(msg):
    if VERBOSE:
        _out.print("[INFO]", msg, markup=False)


def dry(msg):
    if DRY_RUN:
        _out.print("[DRY-RUN]", msg, markup=False)


def say(msg=""):
    _out.print(msg, markup=False)


def step(msg):
    _out.print(msg, style="bold blue", markup=False)


def ok(msg):
    _out.print(msg, style="green", markup=False)


def warn(msg):
    _out.print(msg, style="yellow", markup=False)


def error(msg):
    _err.print(msg, style="bold red", markup=False)
