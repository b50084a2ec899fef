"""Declarative catalog of the components a backup can capture."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

_DAY_SECONDS = 86400


@dataclass(frozen=True, slots=True)
class PathRule:
    """A single ``file`` or ``dir`` entry relative to the working directory."""

    kind: str
    rel: str
    extensions: Tuple[str, ...] = ()
    recursive: bool = True
    max_age_s: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ComponentDef:
    name: str
    label: str
    paths: Tuple[PathRule, ...] = field(default_factory=tuple)
    dynamic: bool = False


def _file(rel: str) -> PathRule:
    return PathRule(kind="file", rel=rel)


def _dir(rel: str, *extensions: str, recursive: bool = True, max_age_s: Optional[float] = None) -> PathRule:
    return PathRule(kind="dir", rel=rel, extensions=tuple(extensions), recursive=recursive, max_age_s=max_age_s)


DEFAULT_COMPONENTS: Dict[str, ComponentDef] = {
    "config": ComponentDef(
        name="config",
        label="Configuration",
        paths=(
            _file("config.json"),
            _dir("config", ".json", ".bak", ".enc"),
        ),
    ),
    "workers": ComponentDef(
        name="workers",
        label="Worker States",
        paths=(
            _file("data/worker-metrics.json"),
            _file("data/worker-chat.json"),
            _file("data/swarm-health.json"),
        ),
        dynamic=True,
    ),
    "data": ComponentDef(
        name="data",
        label="Application Data",
        paths=(
            _dir("data", ".json", ".log", recursive=False),
            _dir("data/earnings", ".json"),
            _dir("data/memory", ".json", ".md"),
            _dir("data/sessions", ".json"),
            _dir("data/plugins", ".json", ".js"),
            _dir("data/logs", ".json", ".log", max_age_s=7 * _DAY_SECONDS),
        ),
    ),
    "schedules": ComponentDef(
        name="schedules",
        label="Schedules & Rules",
        paths=(
            _file("data/scheduler-jobs.json"),
            _file("data/scheduler-history.json"),
        ),
    ),
    "analytics": ComponentDef(
        name="analytics",
        label="Analytics & History",
        paths=tuple(
            _file(f"data/{name}")
            for name in (
                "history.json",
                "chat-history.json",
                "price-history.json",
                "gateway-usage.json",
                "update-history.json",
                "tool-log.json",
                "skill-registry.json",
                "skills-state.json",
                "miner-pnl.json",
                "gpu-mining.json",
                "marketplace.json",
            )
        ),
    ),
}

_ANALYTICS_MARKERS = ("history", "analytics", "earnings", "mining", "pnl", "gateway-usage")


def classify_path(rel_path: str) -> str:
    """Map a manifest path onto the component it is restored as."""

    if rel_path == "config.json" or rel_path.startswith("config/"):
        return "config"
    if "worker" in rel_path or "swarm" in rel_path:
        return "workers"
    if "scheduler" in rel_path:
        return "schedules"
    if any(marker in rel_path for marker in _ANALYTICS_MARKERS):
        return "analytics"
    return "data"


def select_components(
    names: Optional[Iterable[str]],
    catalog: Dict[str, ComponentDef],
) -> List[str]:
    """Return requested component names, defaulting to the whole catalog.

    Unknown names are kept so the manifest records what was asked for; the
    collector simply has nothing to walk for them.
    """

    if not names:
        return list(catalog.keys())
    requested = [str(name) for name in names]
    if "all" in requested:
        return list(catalog.keys())
    return requested


__all__ = [
    "ComponentDef",
    "DEFAULT_COMPONENTS",
    "PathRule",
    "classify_path",
    "select_components",
]
