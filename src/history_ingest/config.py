from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


def repo_root() -> Path:
    # Assumes this file lives at: repo/src/history_ingest/config.py
    return Path(__file__).resolve().parents[2]


def load_yaml(path: Path) -> Any:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_allowed_licenses(data: Any, path: Path) -> List[str]:
    """
    Allow-list YAML is either a mapping with `allowed: [...]` or a bare list.
    """
    allowed = data.get("allowed") if isinstance(data, dict) else data
    if not isinstance(allowed, list) or not all(isinstance(x, str) for x in allowed):
        raise ConfigError(f"{path} must be a list or contain: allowed: [..strings..]")
    return allowed


@dataclass(frozen=True)
class IngestSettings:
    user_agent: str
    timeout_s: float
    sparql_endpoint: str
    search_endpoint: str
    wikipedia_api: str
    wikipedia_summary: str
    rate_max_requests: int
    rate_window_s: float
    rate_buffer_s: float
    max_attempts: int
    backoff_base_s: float
    bulk_query_delay_s: float
    topic_limit: int
    enrichment_batch_size: int
    enrichment_delay_s: float
    wikipedia_delay_s: float

    @staticmethod
    def from_dict(settings: Dict[str, Any]) -> "IngestSettings":
        http = settings.get("http", {})
        endpoints = settings.get("endpoints", {})
        rate = settings.get("rate_limit", {})
        retry = settings.get("retry", {})
        enrichment = settings.get("enrichment", {})

        user_agent = os.getenv("HISTORY_INGEST_USER_AGENT") or http.get("user_agent") or "history-ingest/0.1"

        return IngestSettings(
            user_agent=str(user_agent),
            timeout_s=float(http.get("timeout_s", 60)),
            sparql_endpoint=str(endpoints.get("sparql", "https://query.wikidata.org/sparql")),
            search_endpoint=str(endpoints.get("search", "https://www.wikidata.org/w/api.php")),
            wikipedia_api=str(endpoints.get("wikipedia_api", "https://{lang}.wikipedia.org/w/api.php")),
            wikipedia_summary=str(
                endpoints.get("wikipedia_summary", "https://en.wikipedia.org/api/rest_v1/page/summary/{title}")
            ),
            rate_max_requests=int(rate.get("max_requests", 5)),
            rate_window_s=float(rate.get("window_s", 1.0)),
            rate_buffer_s=float(rate.get("buffer_s", 0.1)),
            max_attempts=int(retry.get("max_attempts", 3)),
            backoff_base_s=float(retry.get("backoff_base_s", 1.0)),
            bulk_query_delay_s=float(settings.get("bulk", {}).get("query_delay_s", 1.5)),
            topic_limit=int(settings.get("topic", {}).get("limit", 500)),
            enrichment_batch_size=int(enrichment.get("batch_size", 50)),
            enrichment_delay_s=float(enrichment.get("delay_s", 1.5)),
            wikipedia_delay_s=float(enrichment.get("wikipedia_delay_s", 0.15)),
        )


@dataclass(frozen=True)
class AppConfig:
    env: str
    allowed_licenses: List[str]
    ingest: IngestSettings
    source: Dict[str, Any]
    artifacts_dir: Path
    normalized_file: str
    audit_file: str
    db_path: Optional[Path]
    settings: Dict[str, Any]


def load_config(
    settings_path: Optional[Path] = None,
    licenses_path: Optional[Path] = None,
) -> AppConfig:
    load_dotenv(repo_root() / ".env")

    settings_path = settings_path or (repo_root() / "configs" / "settings.yaml")
    licenses_path = licenses_path or (repo_root() / "configs" / "licenses.yaml")

    settings = load_yaml(settings_path)
    if not isinstance(settings, dict):
        raise ConfigError(f"{settings_path} must be a mapping")
    allowed = parse_allowed_licenses(load_yaml(licenses_path), licenses_path)

    source = settings.get("source") or {}
    for key in ("id", "source_name", "source_url", "license", "attribution_text"):
        if not str(source.get(key) or "").strip():
            raise ConfigError(f"configs/settings.yaml source.{key} is required")

    env = os.getenv("APP_ENV", settings.get("app", {}).get("env", "local"))

    artifacts = settings.get("artifacts", {})
    base_dir = Path(str(artifacts.get("base_dir", "artifacts")))
    if not base_dir.is_absolute():
        base_dir = repo_root() / base_dir

    db = os.getenv("HISTORY_INGEST_DB", "").strip()

    return AppConfig(
        env=str(env),
        allowed_licenses=[x.strip() for x in allowed if x.strip()],
        ingest=IngestSettings.from_dict(settings),
        source=dict(source),
        artifacts_dir=base_dir,
        normalized_file=str(artifacts.get("normalized_file", "events.normalized.json")),
        audit_file=str(artifacts.get("audit_file", "license-audit.json")),
        db_path=Path(db) if db else None,
        settings=settings,
    )
