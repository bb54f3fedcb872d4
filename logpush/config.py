"""Configuration module — frozen dataclasses loaded from YAML, env and CLI."""

import argparse
import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from logpush.metadata import normalize_metadata


@dataclass(frozen=True)
class AgentConfig:
    url: str = "http://localhost:8000"
    service_id: Optional[str] = None
    timeout: float = 10.0
    meta: dict = field(default_factory=dict)
    flush_interval: float = 5.0
    logs_per_second: int = 5
    run_time: int = 30


def _parse_meta_pairs(pairs) -> dict:
    meta = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid metadata pair {pair!r}, expected key=value")
        meta[key.strip()] = value
    return meta


def _load_yaml(path: Optional[str]) -> dict:
    """Read a YAML config file. A missing file yields an empty mapping."""
    if not path:
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def load_agent_config(argv=None) -> AgentConfig:
    """Build AgentConfig from defaults, a YAML file, env vars, then CLI args.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    parser = argparse.ArgumentParser(description="Logpush agent demo client")
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--url", type=str, default=None)
    parser.add_argument("--service-id", type=str, default=None)
    parser.add_argument("--timeout", type=float, default=None)
    parser.add_argument("--flush-interval", type=float, default=None)
    parser.add_argument("--logs-per-second", type=int, default=None)
    parser.add_argument("--run-time", type=int, default=None)
    parser.add_argument("--meta", action="append", default=None, metavar="KEY=VALUE")

    args = parser.parse_args(argv)

    file_cfg = _load_yaml(args.config or os.environ.get("LOGPUSH_CONFIG"))

    # Each layer overrides the previous one: defaults, file, env
    url = os.environ.get("LOGPUSH_URL", file_cfg.get("url", AgentConfig.url))
    service_id = os.environ.get("LOGPUSH_SERVICE_ID", file_cfg.get("service_id"))
    timeout = float(os.environ.get("LOGPUSH_TIMEOUT", file_cfg.get("timeout", AgentConfig.timeout)))
    flush_interval = float(
        os.environ.get("LOGPUSH_FLUSH_INTERVAL", file_cfg.get("flush_interval", AgentConfig.flush_interval))
    )
    logs_per_second = int(
        os.environ.get("LOGPUSH_LOGS_PER_SECOND", file_cfg.get("logs_per_second", AgentConfig.logs_per_second))
    )
    run_time = int(os.environ.get("LOGPUSH_RUN_TIME", file_cfg.get("run_time", AgentConfig.run_time)))

    meta = dict(file_cfg.get("meta") or {})
    meta.update(_parse_meta_pairs(args.meta))

    # CLI flags override everything else
    return AgentConfig(
        url=args.url if args.url is not None else url,
        service_id=args.service_id if args.service_id is not None else service_id,
        timeout=args.timeout if args.timeout is not None else timeout,
        meta=normalize_metadata(meta) or {},
        flush_interval=args.flush_interval if args.flush_interval is not None else flush_interval,
        logs_per_second=args.logs_per_second if args.logs_per_second is not None else logs_per_second,
        run_time=args.run_time if args.run_time is not None else run_time,
    )
