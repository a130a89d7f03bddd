from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


def getenv_bool(name: str, default: bool = False) -> bool:
    """Get environment value as a boolean, returning True for 1, t and true
    (caps-insensitive), and False for any other value and default if undefined.
    """
    val = os.getenv(name)
    if not val:
        return default
    elif val.lower() in ("1", "t", "true"):
        return True
    else:
        return False


# TEnv-style calibration files ("key: value" per line) are valid YAML
__file_extensions__ = {"json": [".json"], "yaml": [".yaml", ".yml", ".cal"]}


def load_dict(fname: str | Path, ftype: str | None = None) -> dict:
    """Load a text file as a Python dict."""
    fname = Path(fname)

    # determine file type from extension
    if ftype is None:
        for _ftype, exts in __file_extensions__.items():
            if fname.suffix in exts:
                ftype = _ftype

    msg = f"loading {ftype} dict from: {fname}"
    log.debug(msg)

    with fname.open() as f:
        if ftype == "json":
            return json.load(f)
        if ftype == "yaml":
            # an empty file is an empty calibration
            return yaml.safe_load(f) or {}

        msg = f"unsupported file format {ftype}"
        raise NotImplementedError(msg)
