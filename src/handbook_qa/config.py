"""handbook-qa configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (HANDBOOK_ENV, HANDBOOK_DB_PATH, HANDBOOK_DOCS_DIR,
     HANDBOOK_EMBEDDING_MODEL, HANDBOOK_PRIMARY_MODEL, HANDBOOK_FALLBACK_MODEL)
  3. Per-project handbook.yaml
  4. Hardcoded defaults

Config files must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_PROJECT_CONFIG_NAME: str = "handbook.yaml"

# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s), service_role.
# Does NOT match legitimate config keys like max_tokens or primary_max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential"
    r"|service[_\-]?role",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "environment",
        "database",
        "documents",
        "embedding",
        "generation",
        "retrieval",
        "cache",
        "rate_limit",
        "ingest",
    ]
)

PRODUCTION = "production"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """Vector store location (handbook.yaml: database:)."""

    path: str = ".handbook.db"


@dataclass
class DocumentsCfg:
    """Source document directory used by ingestion (handbook.yaml: documents:)."""

    dir: str = "data/pdfs"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (handbook.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class GenerationCfg:
    """Tiered answer generation (handbook.yaml: generation:).

    Attributes:
        primary_model: Fast/cheap model tried first.
        fallback_model: Stronger model used once when the primary fails or
            returns nothing.
        temperature: Sent only to models that accept it.
        timeout_s: Per-call budget; a timeout counts as a failed call.
    """

    primary_model: str = "openai/gpt-5-nano"
    primary_max_tokens: int = 220
    fallback_model: str = "openai/gpt-4o-mini"
    fallback_max_tokens: int = 300
    temperature: float = 0.2
    timeout_s: float = 20.0


@dataclass
class RetrievalCfg:
    """Context retrieval (handbook.yaml: retrieval:)."""

    top_k: int = 6
    fallback_source: str = "Residence_and_Housing_Handbook2025.pdf"


@dataclass
class CacheCfg:
    """Semantic answer cache (handbook.yaml: cache:).

    ``retrieval_threshold`` is the loose net cast by the nearest-neighbour
    query; ``admit_threshold`` is the strict bar a candidate must clear to be
    served. ``dedup_threshold`` decides when a new answer overwrites an
    existing near-duplicate entry instead of adding a row.
    """

    retrieval_threshold: float = 0.7
    admit_threshold: float = 0.9
    candidates: int = 5
    dedup_threshold: float = 0.9
    doc_version: str = "v2025"


@dataclass
class RateLimitCfg:
    """Per-client request ceiling (handbook.yaml: rate_limit:)."""

    window_s: float = 60.0
    max_calls_production: int = 20
    max_calls_development: int = 60


@dataclass
class IngestCfg:
    """Token chunking for ingestion (handbook.yaml: ingest:)."""

    max_tokens: int = 800
    overlap: int = 120
    max_chunk_chars: int = 6000
    encoding: str = "cl100k_base"


@dataclass
class HandbookConfig:
    """Root configuration object, built by load_config() from merged layers."""

    environment: str = "development"
    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    documents: DocumentsCfg = field(default_factory=DocumentsCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    rate_limit: RateLimitCfg = field(default_factory=RateLimitCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == PRODUCTION

    @property
    def max_calls_per_window(self) -> int:
        """Rate-limit ceiling for the current environment."""
        if self.is_production:
            return self.rate_limit.max_calls_production
        return self.rate_limit.max_calls_development


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: HandbookConfig) -> None:
    c = cfg.cache
    if not 0.0 <= c.retrieval_threshold <= c.admit_threshold <= 1.0:
        raise ConfigError(
            "cache.retrieval_threshold must not exceed cache.admit_threshold "
            f"(got {c.retrieval_threshold} > {c.admit_threshold}); both must lie in [0, 1]."
        )
    if cfg.ingest.max_tokens < 1:
        raise ConfigError(f"ingest.max_tokens must be >= 1, got {cfg.ingest.max_tokens}")
    if cfg.ingest.overlap < 0:
        raise ConfigError(f"ingest.overlap must be >= 0, got {cfg.ingest.overlap}")
    if cfg.embedding.dimensions < 1:
        raise ConfigError(
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}"
        )


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


def _cfg_from_dict(data: dict[str, Any]) -> HandbookConfig:
    """Build a *HandbookConfig* from a raw YAML dict."""
    cfg = HandbookConfig()

    if "environment" in data:
        cfg.environment = str(data["environment"])

    if "database" in data:
        cfg.database = DatabaseCfg(path=str(data["database"].get("path", cfg.database.path)))

    if "documents" in data:
        cfg.documents = DocumentsCfg(dir=str(data["documents"].get("dir", cfg.documents.dir)))

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
        )

    if "generation" in data:
        g = data["generation"]
        d = cfg.generation
        cfg.generation = GenerationCfg(
            primary_model=str(g.get("primary_model", d.primary_model)),
            primary_max_tokens=int(g.get("primary_max_tokens", d.primary_max_tokens)),
            fallback_model=str(g.get("fallback_model", d.fallback_model)),
            fallback_max_tokens=int(g.get("fallback_max_tokens", d.fallback_max_tokens)),
            temperature=float(g.get("temperature", d.temperature)),
            timeout_s=float(g.get("timeout_s", d.timeout_s)),
        )

    if "retrieval" in data:
        r = data["retrieval"]
        cfg.retrieval = RetrievalCfg(
            top_k=int(r.get("top_k", cfg.retrieval.top_k)),
            fallback_source=str(r.get("fallback_source", cfg.retrieval.fallback_source)),
        )

    if "cache" in data:
        c = data["cache"]
        d = cfg.cache
        cfg.cache = CacheCfg(
            retrieval_threshold=float(c.get("retrieval_threshold", d.retrieval_threshold)),
            admit_threshold=float(c.get("admit_threshold", d.admit_threshold)),
            candidates=int(c.get("candidates", d.candidates)),
            dedup_threshold=float(c.get("dedup_threshold", d.dedup_threshold)),
            doc_version=str(c.get("doc_version", d.doc_version)),
        )

    if "rate_limit" in data:
        rl = data["rate_limit"]
        d = cfg.rate_limit
        cfg.rate_limit = RateLimitCfg(
            window_s=float(rl.get("window_s", d.window_s)),
            max_calls_production=int(rl.get("max_calls_production", d.max_calls_production)),
            max_calls_development=int(
                rl.get("max_calls_development", d.max_calls_development)
            ),
        )

    if "ingest" in data:
        i = data["ingest"]
        d = cfg.ingest
        cfg.ingest = IngestCfg(
            max_tokens=int(i.get("max_tokens", d.max_tokens)),
            overlap=int(i.get("overlap", d.overlap)),
            max_chunk_chars=int(i.get("max_chunk_chars", d.max_chunk_chars)),
            encoding=str(i.get("encoding", d.encoding)),
        )

    return cfg


def _apply_env_overrides(cfg: HandbookConfig) -> HandbookConfig:
    """Apply HANDBOOK_* environment variable overrides."""
    if env := os.environ.get("HANDBOOK_ENV"):
        cfg.environment = env
    if path := os.environ.get("HANDBOOK_DB_PATH"):
        cfg.database.path = path
    if docs := os.environ.get("HANDBOOK_DOCS_DIR"):
        cfg.documents.dir = docs
    if model := os.environ.get("HANDBOOK_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("HANDBOOK_PRIMARY_MODEL"):
        cfg.generation.primary_model = model
    if model := os.environ.get("HANDBOOK_FALLBACK_MODEL"):
        cfg.generation.fallback_model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(project_dir: Path | None = None) -> HandbookConfig:
    """Load and return a merged *HandbookConfig*.

    Applies layers in order: defaults → handbook.yaml → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *handbook.yaml*. Defaults to CWD.

    Raises:
        ConfigError: If the config file contains API-key-like fields or the
            merged values are inconsistent.
    """
    search_dir = project_dir if project_dir is not None else Path.cwd()

    raw: dict[str, Any] = {}
    cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if cfg_path.exists():
        raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"'{cfg_path}' must contain a YAML mapping at the top level.")
        _check_no_api_keys(raw, cfg_path)
        _warn_unknown_keys(raw, cfg_path)

    cfg = _apply_env_overrides(_cfg_from_dict(raw))
    _validate(cfg)
    return cfg
