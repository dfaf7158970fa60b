import logging
import os
from importlib import resources
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Mapping, Optional

from ruamel.yaml import YAML

logger = logging.getLogger(__name__)


CONFIG_DIR_ENV_VAR_NAME = "PLANARMECH_CONFIG_DIR"
DEFAULT_CONFIG_FILENAME = "default"


yaml = YAML(typ="safe")


def _maybe_open_yaml(resource_root: str, stem: str) -> Optional[dict]:
    """Return parsed YAML from package resources, or None if missing."""
    try:
        path = resources.files(resource_root) / f"{stem}.yml"
    except ModuleNotFoundError:
        return None

    if not path.is_file():
        return None

    with resources.as_file(path) as real_path:
        with open(real_path, "r", encoding="utf-8") as f:
            return yaml.load(f) or {}


def get_user_config_dir() -> Optional[Path]:
    """Get user config directory from environment variable, or return None."""
    env_config_dir = os.environ.get(CONFIG_DIR_ENV_VAR_NAME)
    if env_config_dir is None:
        return None
    return Path(env_config_dir).expanduser()


def deep_merge(base: Mapping[str, Any], over: Mapping[str, Any]) -> dict[str, Any]:
    """Pure 'overlay' that copies only touched branches."""
    out: dict[str, Any] = dict(base)
    for k, v in over.items():
        bv = out.get(k)
        if isinstance(v, dict) and isinstance(bv, dict):
            out[k] = deep_merge(bv, v)
        else:
            out[k] = v
    return out


def load_config(name: str = DEFAULT_CONFIG_FILENAME) -> dict[str, Any]:
    """Load a YAML config as a dict.

    Precedence:
      1) user config dir:    ${PLANARMECH_CONFIG_DIR}/{name}.yml, merged over
      2) package defaults:   planarmech.config/{name}.yml
    """
    data = _maybe_open_yaml("planarmech.config", name)
    if data is None:
        raise ValueError(f"Config '{name}.yml' not found in package resources.")

    user_config_dir = get_user_config_dir()
    if user_config_dir is not None:
        upath = user_config_dir / f"{name}.yml"
        if upath.exists():
            with open(upath, "r", encoding="utf-8") as f:
                data = deep_merge(data, yaml.load(f) or {})
        else:
            logger.info(
                f"Config file {name}.yml not found in user config directory "
                f"`{user_config_dir}`. Using package defaults."
            )
    return data


def dict_to_namespace(d: Mapping[str, Any]) -> SimpleNamespace:
    """Convert a nested dictionary to a nested SimpleNamespace."""
    return SimpleNamespace(**{
        k: dict_to_namespace(v) if isinstance(v, Mapping) else v
        for k, v in d.items()
    })


def _normalize_log_level(label: str, lvl: str | int) -> int:
    if isinstance(lvl, str):
        lvl = lvl.strip().upper()
        try:
            lvl = logging.getLevelNamesMapping()[lvl]
        except KeyError:
            raise ValueError(f"Invalid {label} specified in YAML config: {lvl!r}")
    if not isinstance(lvl, int):
        raise ValueError(f"Cannot parse log level {lvl!r}")
    return lvl


def _setup_logging(logging_ns: SimpleNamespace) -> SimpleNamespace:
    for label in ["file_level", "console_level"]:
        lvl = getattr(logging_ns, label, None)
        if lvl is None:
            continue
        setattr(logging_ns, label, _normalize_log_level(label, lvl))
    return logging_ns


def _setup_solver(solver_ns: SimpleNamespace) -> SimpleNamespace:
    solver_ns.rtol = float(solver_ns.rtol)
    solver_ns.atol = float(solver_ns.atol)
    solver_ns.max_steps = int(solver_ns.max_steps)
    if solver_ns.max_steps < 1:
        raise ValueError(f"solver.max_steps must be positive; got {solver_ns.max_steps}")
    return solver_ns
