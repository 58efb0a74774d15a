from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence
import yaml

class ConfigError(ValueError):
    """Raised when a config file is not shaped the way the loaders expect."""

    pass

def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: expected a mapping at the top level, got {type(data).__name__}")
    return data

def load_records(path: str | Path, section: str, required: Sequence[str] = ("id",)) -> List[Dict[str, Any]]:
    """Entries of a list section (``structures:``, ``investors:``), each checked for required keys."""
    records = load_yaml(path).get(section) or []
    if not isinstance(records, list):
        raise ConfigError(f"{path}: '{section}' must be a list")
    for n, rec in enumerate(records, start=1):
        if not isinstance(rec, dict):
            raise ConfigError(f"{path}: {section} entry {n} is not a mapping")
        missing = [k for k in required if k not in rec]
        if missing:
            raise ConfigError(f"{path}: {section} entry {n} is missing {', '.join(missing)}")
        for fo in rec.get("fund_ownerships") or []:
            if not isinstance(fo, dict) or "fund_id" not in fo:
                raise ConfigError(f"{path}: {section} entry {rec['id']} has a fund ownership without fund_id")
    return records

@dataclass(frozen=True)
class LoadedConfig:
    policy: Dict[str, Any]
    structures: List[Dict[str, Any]]
    investors: List[Dict[str, Any]]

def load_all(
    policy_path: str = "config/call_policy.yaml",
    structures_path: str = "config/structures.yaml",
    investors_path: str = "config/investors.yaml",
) -> LoadedConfig:
    return LoadedConfig(
        policy=load_yaml(policy_path),
        structures=load_records(structures_path, "structures"),
        investors=load_records(investors_path, "investors", required=("id", "name")),
    )
