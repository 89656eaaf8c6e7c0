"""Action drivers: plain jobs and Helm chart upgrades."""

from scid.drivers.helm import HelmDriver, build_chart_graph, discover_charts
from scid.drivers.jobs import jobs_from_config, run_jobs

__all__ = [
    "HelmDriver",
    "build_chart_graph",
    "discover_charts",
    "jobs_from_config",
    "run_jobs",
]
