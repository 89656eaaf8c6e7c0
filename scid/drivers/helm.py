"""Helm chart discovery and dependency-ordered upgrades.

Chart layout convention: every immediate subdirectory of ``helm.charts_path``
that contains ``scid.toml`` (or ``scid.<env>.toml`` when ``helm.env`` is set)
is a chart.  Example::

    release_name = "ingress"
    namespace = "ingress-nginx"
    chart_path_override = "chart"          # optional, relative to the chart dir
    value_paths = ["values.yaml"]          # relative to the chart dir
    optional_value_paths = ["~/ingress.yaml"]
    sops_value_paths = ["secrets.enc.yaml"]
    dependencies = ["cert-manager"]        # other chart directory names

The chart directory is the chart's watch path.
"""

from __future__ import annotations

import asyncio
import os
import posixpath
import tempfile
import tomllib
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from scid.errors import ConfigurationError, DecryptionError, InfraError
from scid.graph import DependencyGraph, DependencyScheduler
from scid.models.config import HelmConfig
from scid.models.jobs import ActionKind, ChartNode, JobSpec, RunOutcome
from scid.observability.logging import get_logger
from scid.runner import ActionRunner

_log = get_logger("drivers.helm")

CHART_CONFIG_NAME = "scid"
HELM_COLOR = "#10148c"

DecryptFn = Callable[[Path, str], Awaitable[bytes]]


def chart_config_filename(env: str = "") -> str:
    if env:
        return f"{CHART_CONFIG_NAME}.{env}.toml"
    return f"{CHART_CONFIG_NAME}.toml"


def _require_str(data: dict[str, Any], key: str, source: Path) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{source}: '{key}' is required")
    return value


def _str_tuple(data: dict[str, Any], key: str, source: Path) -> tuple[str, ...]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"{source}: '{key}' must be a list of strings")
    return tuple(value)


def load_chart(config_file: Path, name: str, chart_dir: str) -> ChartNode:
    """Parse one chart's TOML file into a ``ChartNode``."""
    try:
        with config_file.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"cannot read {config_file}: {exc}") from exc

    override = data.get("chart_path_override", "")
    if not isinstance(override, str):
        raise ConfigurationError(f"{config_file}: 'chart_path_override' must be a string")

    return ChartNode(
        name=name,
        chart_dir=chart_dir,
        release_name=_require_str(data, "release_name", config_file),
        namespace=_require_str(data, "namespace", config_file),
        chart_path_override=override,
        value_paths=_str_tuple(data, "value_paths", config_file),
        optional_value_paths=_str_tuple(data, "optional_value_paths", config_file),
        encrypted_value_paths=_str_tuple(data, "sops_value_paths", config_file),
        dependencies=_str_tuple(data, "dependencies", config_file),
    )


def discover_charts(repo_root: Path, helm: HelmConfig) -> list[ChartNode]:
    """Find every chart under ``helm.charts_path``, sorted by directory name.

    Raises:
        ConfigurationError: the charts directory is unreadable or a chart
            file is malformed.
    """
    charts_rel = posixpath.normpath(helm.charts_path.replace(os.sep, "/"))
    charts_dir = repo_root / charts_rel
    try:
        entries = sorted(charts_dir.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise ConfigurationError(f"cannot list charts directory {charts_dir}: {exc}") from exc

    filename = chart_config_filename(helm.env)
    charts: list[ChartNode] = []
    for entry in entries:
        if not entry.is_dir():
            continue
        config_file = entry / filename
        if not config_file.is_file():
            continue
        chart_dir = entry.name if charts_rel == "." else posixpath.join(charts_rel, entry.name)
        charts.append(load_chart(config_file, entry.name, chart_dir))

    _log.info("charts_discovered", charts_path=charts_rel, count=len(charts), config=filename)
    return charts


def build_chart_graph(repo_root: Path, helm: HelmConfig) -> DependencyGraph:
    return DependencyGraph.build(discover_charts(repo_root, helm))


def expand_home(path: str) -> str:
    if path == "~" or path.startswith("~/"):
        return os.path.expanduser(path)
    return path


async def sops_decrypt(path: Path, fmt: str = "yaml") -> bytes:
    """Decrypt a sops-encrypted file and return the plaintext.

    Raises:
        DecryptionError: sops is missing or refused to decrypt the file.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "sops",
            "--decrypt",
            "--input-type",
            fmt,
            "--output-type",
            fmt,
            str(path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise DecryptionError(f"cannot start sops for {path}: {exc}") from exc

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise DecryptionError(f"sops could not decrypt {path}: {message}")
    return stdout


class HelmDriver:
    """Upgrades charts in dependency order through an ``ActionRunner``.

    Args:
        runner:    Runner bound to the run's snapshot; its ``cwd`` is the mirror.
        repo_root: Root of the mirror; chart paths are relative to it.
        decrypt:   Overlay decryptor; replaced in tests.
    """

    def __init__(self, runner: ActionRunner, repo_root: Path, decrypt: DecryptFn = sops_decrypt) -> None:
        self._runner = runner
        self._repo_root = repo_root
        self._decrypt = decrypt

    def base_command(self, node: ChartNode) -> list[str]:
        """``helm upgrade`` arguments up to (not including) decrypted overlays."""
        argv = [
            "helm",
            "upgrade",
            "--install",
            "--wait",
            "--namespace",
            node.namespace,
            "--create-namespace",
        ]
        for path in node.value_paths:
            argv += ["--values", posixpath.join(node.chart_dir, path)]

        for path in node.optional_value_paths:
            candidate = Path(expand_home(path))
            if not candidate.is_absolute():
                candidate = self._repo_root / candidate
            if not candidate.exists():
                _log.debug("optional_values_missing", chart=node.name, path=str(candidate))
                continue
            argv += ["--values", str(candidate)]
        return argv

    async def build_command(self, node: ChartNode, workdir: Path) -> list[str]:
        """Full ``helm upgrade`` command; decrypted overlays are written to *workdir*."""
        argv = self.base_command(node)
        for position, enc_path in enumerate(node.encrypted_value_paths):
            source = self._repo_root / node.chart_dir / enc_path
            plaintext = await self._decrypt(source, "yaml")
            target = workdir / f"scid-helm-sops-enc-{position}.yaml"
            target.write_bytes(plaintext)
            argv += ["--values", str(target)]
        argv += [node.release_name, node.chart_path]
        return argv

    def job_for(self, node: ChartNode, argv: list[str]) -> JobSpec:
        return JobSpec(
            name=node.name,
            watch_paths=node.watch_paths,
            action=tuple(argv),
            color=HELM_COLOR,
            kind=ActionKind.HELM,
        )

    async def upgrade_if_changed(self, node: ChartNode) -> RunOutcome:
        """Gate *node*, then decrypt overlays and run ``helm upgrade``.

        Overlays are only decrypted for charts that will actually run.
        """
        probe = self.job_for(node, [*self.base_command(node), node.release_name, node.chart_path])
        changed = self._runner.changed_path(probe)
        if changed is None:
            return RunOutcome(name=node.name)
        if self._runner.dry_run or not node.encrypted_value_paths:
            return await self._runner.execute(probe, changed)

        with tempfile.TemporaryDirectory(prefix="scid-helm-") as tmp:
            argv = await self.build_command(node, Path(tmp))
            return await self._runner.execute(self.job_for(node, argv), changed)

    async def run(self, graph: DependencyGraph) -> list[RunOutcome]:
        """Upgrade every chart in *graph*; individual failures never escape."""
        scheduler: DependencyScheduler[RunOutcome] = DependencyScheduler(graph, self._guarded_upgrade)
        results = await scheduler.run()
        outcomes: list[RunOutcome] = []
        for name, result in results:
            if isinstance(result, RunOutcome):
                outcomes.append(result)
            elif isinstance(result, InfraError):
                outcomes.append(RunOutcome(name=name, infra_error=result))
            else:
                outcomes.append(RunOutcome(name=name, infra_error=InfraError(str(result))))
        return outcomes

    async def _guarded_upgrade(self, node: ChartNode) -> RunOutcome:
        try:
            return await self.upgrade_if_changed(node)
        except InfraError as exc:
            _log.error("helm_chart_upgrade_failed", chart=node.name, chart_path=node.chart_dir, error=str(exc))
            return RunOutcome(name=node.name, infra_error=exc)
        except OSError as exc:
            _log.error("helm_chart_upgrade_failed", chart=node.name, chart_path=node.chart_dir, error=str(exc))
            return RunOutcome(name=node.name, infra_error=InfraError(str(exc)))
