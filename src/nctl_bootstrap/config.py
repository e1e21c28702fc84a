"""Bootstrap settings and the explicit configuration object.

Settings hold the fixed knobs of a bootstrap run (paths relative to the
repository root, marker text, remotes, commands). They default to the
values CI has always used and can be overridden by an optional YAML file
at ``<root>/nctl_bootstrap.yaml``.

The configuration object is built from the environment the activation
artifact produced, so later steps never read ambient process state.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator

from nctl_bootstrap.errors import ConfigError, EnvironmentLoadError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "nctl_bootstrap.yaml"
CONFIG_SCHEMA = "bootstrap_config.schema.json"


@dataclass(frozen=True)
class RepositorySpec:
    """An external repository cloned into a location named by an env var."""

    name: str
    remote_url: str
    home_env: str


@dataclass(frozen=True)
class BootstrapSettings:
    """Fixed knobs of a bootstrap run."""

    activate_script: str = "utils/nctl/activate"
    nctl_home_default: str = "utils/nctl"
    marker_file: str = "sh/assets/compile_client.sh"
    marker: str = "casper-mainnet"
    branch_override_env: str = "DRONE_BRANCH"
    default_branch: str = "dev"
    branch_marker_present: str = "dev"
    branch_marker_absent: str = "feat-fast-sync"
    client: RepositorySpec = field(
        default_factory=lambda: RepositorySpec(
            name="casper-client-rs",
            remote_url="https://github.com/casper-ecosystem/casper-client-rs",
            home_env="NCTL_CASPER_CLIENT_HOME",
        )
    )
    launcher: RepositorySpec = field(
        default_factory=lambda: RepositorySpec(
            name="casper-node-launcher",
            remote_url="https://github.com/casper-network/casper-node-launcher",
            home_env="NCTL_CASPER_NODE_LAUNCHER_HOME",
        )
    )
    build_command: str = "nctl-compile"
    cache_stats_command: tuple[str, ...] = ("cachepot", "--show-stats")

    def activate_path(self, root_dir: Path) -> Path:
        return root_dir / self.activate_script

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BootstrapSettings:
        """Overlay validated config data on the defaults."""
        settings = cls()
        scalars = {
            key: data[key]
            for key in (
                "activate_script",
                "nctl_home_default",
                "marker_file",
                "marker",
                "branch_override_env",
                "default_branch",
                "build_command",
            )
            if key in data
        }
        settings = replace(settings, **scalars)

        branches = data.get("branches", {})
        if "marker_present" in branches:
            settings = replace(settings, branch_marker_present=branches["marker_present"])
        if "marker_absent" in branches:
            settings = replace(settings, branch_marker_absent=branches["marker_absent"])

        repositories = data.get("repositories", {})
        if "client" in repositories:
            settings = replace(settings, client=replace(settings.client, **repositories["client"]))
        if "launcher" in repositories:
            settings = replace(settings, launcher=replace(settings.launcher, **repositories["launcher"]))

        if "cache_stats_command" in data:
            settings = replace(settings, cache_stats_command=tuple(data["cache_stats_command"]))
        return settings


def _load_schema() -> dict[str, Any]:
    schema_text = files("nctl_bootstrap.schemas").joinpath(CONFIG_SCHEMA).read_text(encoding="utf-8")
    return json.loads(schema_text)


def validate_config_data(data: Any, source: Path) -> None:
    """Validate raw config data against the packaged schema.

    Raises:
        ConfigError: listing every violation found
    """
    validator = Draft202012Validator(_load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if not errors:
        return
    messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]
    raise ConfigError(
        f"Invalid config structure in {source}:\n" + "\n".join(f"  - {msg}" for msg in messages)
    )


def load_settings(root_dir: Path, config_path: Path | None = None) -> BootstrapSettings:
    """Load settings from an explicit file, ``<root>/nctl_bootstrap.yaml``, or defaults.

    Args:
        root_dir: Repository root directory
        config_path: Explicit config file; must exist when given

    Returns:
        BootstrapSettings with file values overlaid on defaults

    Raises:
        ConfigError: If the config file is missing (explicit path), malformed, or invalid
    """
    path = config_path if config_path is not None else root_dir / CONFIG_FILENAME
    if not path.exists():
        if config_path is not None:
            raise ConfigError(f"Config file not found: {path}")
        return BootstrapSettings()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML config at {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    if data is None:
        data = {}
    validate_config_data(data, path)
    logger.info("Loaded settings from %s", path)
    return BootstrapSettings.from_dict(data)


def _under_root(root_dir: Path, value: str) -> Path:
    # Relative paths are read from inside the root, as the CI script did.
    path = Path(value).expanduser()
    return path if path.is_absolute() else root_dir / path


@dataclass(frozen=True)
class BootstrapConfig:
    """Everything later steps need, resolved from the activated environment."""

    root_dir: Path
    nctl_home: Path
    client_home: Path
    launcher_home: Path
    override_branch: str
    environment: Mapping[str, str]
    settings: BootstrapSettings

    @property
    def activate_script(self) -> Path:
        return self.settings.activate_path(self.root_dir)

    @property
    def marker_path(self) -> Path:
        return self.nctl_home / self.settings.marker_file

    @classmethod
    def from_environment(
        cls,
        root_dir: Path,
        environment: Mapping[str, str],
        settings: BootstrapSettings,
    ) -> BootstrapConfig:
        """Build the config from an activated environment mapping.

        Raises:
            EnvironmentLoadError: If a repository home variable is unset or empty
        """
        homes: dict[str, Path] = {}
        for spec in (settings.client, settings.launcher):
            value = environment.get(spec.home_env, "").strip()
            if not value:
                raise EnvironmentLoadError(
                    f"activation did not define {spec.home_env} (home of {spec.name})"
                )
            homes[spec.home_env] = _under_root(root_dir, value)

        nctl_value = environment.get("NCTL", "").strip()
        nctl_home = _under_root(root_dir, nctl_value) if nctl_value else root_dir / settings.nctl_home_default

        return cls(
            root_dir=root_dir,
            nctl_home=nctl_home,
            client_home=homes[settings.client.home_env],
            launcher_home=homes[settings.launcher.home_env],
            override_branch=environment.get(settings.branch_override_env) or settings.default_branch,
            environment=dict(environment),
            settings=settings,
        )
