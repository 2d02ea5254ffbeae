"""Config discovery and loading.

Search order: explicit ``--config`` path, ``./castellan.yaml``, then
``~/.castellan/config.yaml``. The first non-empty file wins; with none,
defaults apply. ``${VAR}`` and ``${VAR:-fallback}`` in string values are
expanded from the environment before validation.
"""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import CastellanConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG = "castellan.yaml"

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def config_search_path(cli_path: str | None = None) -> list[Path]:
    """Candidate config files, highest precedence first."""
    candidates = [Path(PROJECT_CONFIG), Path.home() / ".castellan" / "config.yaml"]
    if cli_path:
        candidates.insert(0, Path(cli_path))
    return candidates


def load_config(cli_path: str | None = None) -> CastellanConfig:
    """Resolve and validate the effective config.

    Raises ValueError when an explicit path does not exist, or when the chosen
    file holds invalid YAML or values the models reject.
    """
    if cli_path and not Path(cli_path).is_file():
        raise ValueError(f"Config file not found: {cli_path}")

    for path in config_search_path(cli_path):
        if not path.is_file():
            continue
        cfg = _read_config(path)
        if cfg is not None:
            logger.debug("loaded config from %s", path)
            return cfg

    return CastellanConfig()


def _read_config(path: Path) -> CastellanConfig | None:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: top level must be a mapping")
    try:
        return CastellanConfig.model_validate(_expand_env_vars(raw))
    except ValidationError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Expand environment references in every string nested in ``obj``."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


# Default YAML template for `castellan config init`
DEFAULT_CONFIG_TEMPLATE = """\
# castellan.yaml

# Permission catalog (static, versioned with the code)
policy:
  path: "policies.yaml"

# Role assignment store (the only durable state)
store:
  provider: "sqlite"           # sqlite | memory
  path: ".castellan/authz.db"
  timeout: 5.0                 # seconds, bounds every storage call

# Tenants compiled at startup
tenants:
  - "acme"
  # - "${EXTRA_TENANT:-beta}"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""

# Default policy document for `castellan config init`
DEFAULT_POLICY_TEMPLATE = """\
# policies.yaml
# roles -> role name -> permissions -> resource -> [actions]
# "all" as a resource name or inside an action list matches every value.

roles:
  admin:
    permissions:
      all: [all]

  instructor:
    permissions:
      assignment: [create, view, update]
      course: [view]

  student:
    permissions:
      assignment: [view]
      course: [view]
"""
