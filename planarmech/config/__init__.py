from types import SimpleNamespace

from .config import (
    CONFIG_DIR_ENV_VAR_NAME,
    _setup_logging,
    _setup_solver,
    dict_to_namespace,
    load_config,
)

LOGGING = SimpleNamespace()
SOLVER = SimpleNamespace()


def _overwrite_namespace(dst: SimpleNamespace, src: SimpleNamespace) -> None:
    dst.__dict__.clear()
    dst.__dict__.update(src.__dict__)


def reload_config() -> None:
    """(Re)load the global config namespaces in place.

    Modules holding a reference to `SOLVER` or `LOGGING` see the new values.
    """
    cfg = dict_to_namespace(load_config())
    _overwrite_namespace(LOGGING, _setup_logging(cfg.logging))
    _overwrite_namespace(SOLVER, _setup_solver(cfg.solver))


reload_config()
