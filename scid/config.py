"""Configuration loading from a TOML file, SCID_* environment variables and flags.

Precedence (lowest first): file, environment, command-line flags.  After
merging, ``%env%:NAME`` and ``%file%:PATH`` references in string fields are
substituted, then the result is validated.  The returned ``ScidConfig`` is
built once and passed explicitly to every component.
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

from scid.errors import ConfigurationError
from scid.models.config import (
    HelmConfig,
    JobConfig,
    LogConfig,
    ScidConfig,
    SlackConfig,
    TagConfig,
    WebhookConfig,
)
from scid.models.snapshot import TagModel, TagPolicy
from scid.vcs.resolver import compile_tag_pattern

DEFAULT_CONFIG_PATH = Path("/etc/scid.toml")

_ENV_PREFIX = "%env%:"
_FILE_PREFIX = "%file%:"
_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"SCID_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ConfigurationError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


# ---------------------------------------------------------------------------
# TOML -> dataclasses
# ---------------------------------------------------------------------------


def _as_table(value: Any, where: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{where}' must be a table")
    return value


def _as_str(value: Any, where: str, default: str = "") -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigurationError(f"'{where}' must be a string")
    return value


def _as_bool(value: Any, where: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{where}' must be a boolean")
    return value


def _as_str_list(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"'{where}' must be a list of strings")
    return list(value)


def _parse_job(name: str, data: dict[str, Any]) -> JobConfig:
    where = f"jobs.{name}"
    if "exec_line" not in data:
        raise ConfigurationError(f"'{where}.exec_line' is required")
    if "watch_paths" not in data:
        raise ConfigurationError(f"'{where}.watch_paths' is required")
    return JobConfig(
        exec_line=_as_str_list(data.get("exec_line"), f"{where}.exec_line"),
        watch_paths=_as_str_list(data.get("watch_paths"), f"{where}.watch_paths"),
        slack_color=_as_str(data.get("slack_color"), f"{where}.slack_color"),
    )


def parse_config(data: dict[str, Any]) -> ScidConfig:
    """Build a ``ScidConfig`` from a decoded TOML document."""
    config = ScidConfig(
        repo_url=_as_str(data.get("repo_url"), "repo_url"),
        branch=_as_str(data.get("branch"), "branch"),
        dry_run=_as_bool(data.get("dry_run"), "dry_run"),
        force_rerun=_as_bool(data.get("force_rerun"), "force_rerun"),
        mirror_root=Path(_as_str(data.get("mirror_root"), "mirror_root", ".")),
    )

    tag = _as_table(data.get("tag"), "tag")
    config.tag = TagConfig(
        model=_as_str(tag.get("model"), "tag.model", "disabled"),
        value=_as_str(tag.get("value"), "tag.value"),
        include_prerelease=_as_bool(tag.get("include_prerelease"), "tag.include_prerelease"),
    )

    # Older configs use a top-level helm_charts_path key.
    helm = _as_table(data.get("helm"), "helm")
    charts_path = _as_str(helm.get("charts_path"), "helm.charts_path") or _as_str(
        data.get("helm_charts_path"), "helm_charts_path"
    )
    if charts_path:
        config.helm = HelmConfig(charts_path=charts_path, env=_as_str(helm.get("env"), "helm.env"))

    if "slack" in data:
        slack = _as_table(data["slack"], "slack")
        config.slack = SlackConfig(
            channel=_as_str(slack.get("channel"), "slack.channel"),
            token=_as_str(slack.get("token"), "slack.token"),
            api_url=_as_str(slack.get("api_url"), "slack.api_url", SlackConfig.api_url),
        )

    if "webhook" in data:
        webhook = _as_table(data["webhook"], "webhook")
        headers = _as_table(webhook.get("headers"), "webhook.headers")
        config.webhook = WebhookConfig(
            url=_as_str(webhook.get("url"), "webhook.url"),
            headers={key: _as_str(val, f"webhook.headers.{key}") for key, val in headers.items()},
        )

    jobs = _as_table(data.get("jobs"), "jobs")
    config.jobs = {name: _parse_job(name, _as_table(job, f"jobs.{name}")) for name, job in jobs.items()}

    log = _as_table(data.get("log"), "log")
    config.log = LogConfig(
        level=_as_str(log.get("level"), "log.level", "info"),
        format=_as_str(log.get("format"), "log.format", "json"),
    )
    return config


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"cannot read {path}: {exc}") from exc


def resolve_config_path(config_path: Path | None = None) -> Path | None:
    """Pick the config file; None means "run on defaults".

    An explicitly requested file (argument or ``SCID_CONFIG``) must exist;
    the default ``/etc/scid.toml`` may be absent.
    """
    if config_path is None and os.environ.get("SCID_CONFIG"):
        config_path = Path(os.environ["SCID_CONFIG"])
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError(f"config file {config_path} does not exist")
        return config_path
    if DEFAULT_CONFIG_PATH.is_file():
        return DEFAULT_CONFIG_PATH
    return None


# ---------------------------------------------------------------------------
# %env% / %file% substitution
# ---------------------------------------------------------------------------


def substitute_value(value: str) -> str:
    """Apply the ``%env%:`` / ``%file%:`` rule to one string."""
    if value.startswith(_ENV_PREFIX):
        name = value[len(_ENV_PREFIX) :]
        if name not in os.environ:
            raise ConfigurationError(f"Environment variable {name} is not set")
        return os.environ[name]
    if value.startswith(_FILE_PREFIX):
        file_name = value[len(_FILE_PREFIX) :]
        try:
            return Path(file_name).read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"cannot read {file_name}: {exc}") from exc
    return value


def substitute_config(config: ScidConfig) -> None:
    """Rewrite every string field of *config* in place.

    List fields (``exec_line``, ``watch_paths``) are left untouched.
    """
    config.repo_url = substitute_value(config.repo_url)
    config.branch = substitute_value(config.branch)
    config.mirror_root = Path(substitute_value(str(config.mirror_root)))

    config.tag.model = substitute_value(config.tag.model)
    config.tag.value = substitute_value(config.tag.value)

    if config.helm is not None:
        config.helm.charts_path = substitute_value(config.helm.charts_path)
        config.helm.env = substitute_value(config.helm.env)

    if config.slack is not None:
        config.slack.channel = substitute_value(config.slack.channel)
        config.slack.token = substitute_value(config.slack.token)
        config.slack.api_url = substitute_value(config.slack.api_url)

    if config.webhook is not None:
        config.webhook.url = substitute_value(config.webhook.url)
        config.webhook.headers = {key: substitute_value(val) for key, val in config.webhook.headers.items()}

    for job in config.jobs.values():
        job.slack_color = substitute_value(job.slack_color)

    config.log.level = substitute_value(config.log.level)
    config.log.format = substitute_value(config.log.format)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def tag_policy_from_config(tag: TagConfig) -> TagPolicy:
    """Translate ``[tag]`` into a ``TagPolicy``.

    Raises:
        ConfigurationError: unknown model, missing value, or bad pattern.
    """
    try:
        model = TagModel(tag.model.lower())
    except ValueError:
        valid = ", ".join(m.value for m in TagModel)
        raise ConfigurationError(f"unsupported tag model: {tag.model} (expected one of {valid})") from None

    if model == TagModel.STATIC:
        if not tag.value:
            raise ConfigurationError("'tag.value' is required for the static tag model")
        return TagPolicy.static(tag.value)
    if model == TagModel.PATTERN:
        if not tag.value:
            raise ConfigurationError("'tag.value' is required for the pattern tag model")
        compile_tag_pattern(tag.value)
        return TagPolicy.pattern_latest(tag.value)
    if model == TagModel.SEMVER:
        return TagPolicy.semver_latest(include_prerelease=tag.include_prerelease)
    return TagPolicy.disabled()


def validate_config(config: ScidConfig) -> None:
    if not config.repo_url:
        raise ConfigurationError("'repo_url' is required")
    if not config.branch:
        raise ConfigurationError("'branch' is required")

    tag_policy_from_config(config.tag)

    if config.slack is not None:
        if not config.slack.channel:
            raise ConfigurationError("'slack.channel' is required")
        if not config.slack.token:
            raise ConfigurationError("'slack.token' is required")

    if config.webhook is not None and not config.webhook.url:
        raise ConfigurationError("'webhook.url' is required")

    for name, job in config.jobs.items():
        if not job.exec_line:
            raise ConfigurationError(f"'jobs.{name}.exec_line' must not be empty")
        if job.slack_color and not _HEX_COLOR.match(job.slack_color):
            raise ConfigurationError(f"'jobs.{name}.slack_color' is not a hex colour: {job.slack_color}")

    config.log.level = _validate_log_level(config.log.level)
    config.log.format = _validate_log_format(config.log.format)


def load_config(
    config_path: Path | None = None,
    *,
    repo_url: str | None = None,
    branch: str | None = None,
    helm_charts_path: str | None = None,
    dry_run: bool | None = None,
    force_rerun: bool | None = None,
) -> ScidConfig:
    """Load, merge, substitute and validate the configuration.

    Keyword arguments are command-line overrides; None means "not given".
    """
    path = resolve_config_path(config_path)
    config = parse_config(_read_toml(path)) if path is not None else ScidConfig()

    # --- Environment ----------------------------------------------------
    config.repo_url = _env("REPO_URL", config.repo_url)
    config.branch = _env("BRANCH", config.branch)
    config.dry_run = _env_bool("DRY_RUN", config.dry_run)
    config.force_rerun = _env_bool("FORCE_RERUN", config.force_rerun)
    config.mirror_root = Path(_env("MIRROR_ROOT", str(config.mirror_root)))
    config.log.level = _env("LOG_LEVEL", config.log.level)
    config.log.format = _env("LOG_FORMAT", config.log.format)

    # --- Flags ------------------------------------------------------------
    if repo_url is not None:
        config.repo_url = repo_url
    if branch is not None:
        config.branch = branch
    if helm_charts_path is not None:
        if config.helm is None:
            config.helm = HelmConfig()
        config.helm.charts_path = helm_charts_path
    if dry_run is not None:
        config.dry_run = dry_run
    if force_rerun is not None:
        config.force_rerun = force_rerun

    substitute_config(config)
    validate_config(config)
    return config
