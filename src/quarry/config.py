"""quarry configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (QUARRY_DB_PATH, QUARRY_EMBEDDING_MODEL, ...)
  3. Per-project quarry.yaml
  4. Global ~/.quarry/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quarry"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "quarry.yaml"

# Fields that suggest an API key — forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token"
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret"
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections — unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "generation", "retrieval", "chunking", "scraping", "logging"]
)


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
    """SQLite database location (quarry.yaml: database:)."""

    path: str = ".quarry.db"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (quarry.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536


@dataclass
class GenerationCfg:
    """Answer generation configuration (quarry.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    max_tokens: int = 1024
    temperature: float = 0.0
    num_retries: int = 0


@dataclass
class RetrievalCfg:
    """Retrieval tuning (quarry.yaml: retrieval:).

    Attributes:
        top_k: Number of nearest chunks requested from the vector index.
        distance_threshold: Cosine distance at or above which a chunk is
            considered irrelevant and dropped (lower = more similar).
        max_context_chunks: Cap on chunks passed to the model after filtering.
    """

    top_k: int = 7
    distance_threshold: float = 0.7
    max_context_chunks: int = 5


@dataclass
class ChunkingCfg:
    """Token budget for chunks (quarry.yaml: chunking:)."""

    max_tokens: int = 500
    encoding: str = "cl100k_base"


@dataclass
class ScrapingCfg:
    """Web scraping configuration (quarry.yaml: scraping:).

    Timeouts and delays are in seconds.
    """

    static_timeout: float = 8.0
    render_timeout: float = 30.0
    settle_delay: float = 2.0
    selector_timeout: float = 5.0
    fallback_threshold: int = 500
    min_content_chars: int = 100
    concurrency: int = 4
    block_private_addresses: bool = True


@dataclass
class LoggingCfg:
    """Log level and optional log file (quarry.yaml: logging:)."""

    level: str = "INFO"
    file: str | None = None


@dataclass
class QuarryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    scraping: ScrapingCfg = field(default_factory=ScrapingCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names.

    Global config must never store credentials; they belong in env vars.
    """

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
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


def _positive(value: Any, name: str, cast: type = int) -> Any:
    """Cast *value* and require it to be > 0."""
    try:
        result = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from exc
    if result <= 0:
        raise ConfigError(f"'{name}' must be > 0, got {result}")
    return result


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> QuarryConfig:
    """Build a *QuarryConfig* from a merged raw YAML dict."""
    cfg = QuarryConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=_positive(
                e.get("dimensions", cfg.embedding.dimensions), "embedding.dimensions"
            ),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=_positive(
                g.get("max_tokens", cfg.generation.max_tokens), "generation.max_tokens"
            ),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            num_retries=int(g.get("num_retries", cfg.generation.num_retries)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            top_k=_positive(r.get("top_k", cfg.retrieval.top_k), "retrieval.top_k"),
            distance_threshold=_positive(
                r.get("distance_threshold", cfg.retrieval.distance_threshold),
                "retrieval.distance_threshold",
                float,
            ),
            max_context_chunks=_positive(
                r.get("max_context_chunks", cfg.retrieval.max_context_chunks),
                "retrieval.max_context_chunks",
            ),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            max_tokens=_positive(
                c.get("max_tokens", cfg.chunking.max_tokens), "chunking.max_tokens"
            ),
            encoding=str(c.get("encoding", cfg.chunking.encoding)),
        )

    if "scraping" in data:
        s = data["scraping"] or {}
        base = cfg.scraping
        cfg.scraping = ScrapingCfg(
            static_timeout=_positive(
                s.get("static_timeout", base.static_timeout), "scraping.static_timeout", float
            ),
            render_timeout=_positive(
                s.get("render_timeout", base.render_timeout), "scraping.render_timeout", float
            ),
            settle_delay=float(s.get("settle_delay", base.settle_delay)),
            selector_timeout=float(s.get("selector_timeout", base.selector_timeout)),
            fallback_threshold=int(s.get("fallback_threshold", base.fallback_threshold)),
            min_content_chars=int(s.get("min_content_chars", base.min_content_chars)),
            concurrency=_positive(
                s.get("concurrency", base.concurrency), "scraping.concurrency"
            ),
            block_private_addresses=bool(
                s.get("block_private_addresses", base.block_private_addresses)
            ),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)).upper(),
            file=lg.get("file") or cfg.logging.file,
        )

    return cfg


def _apply_env_overrides(cfg: QuarryConfig) -> QuarryConfig:
    """Apply QUARRY_* environment variable overrides."""
    if path := os.environ.get("QUARRY_DB_PATH"):
        cfg.database.path = path
    if model := os.environ.get("QUARRY_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("QUARRY_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if level := os.environ.get("QUARRY_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    if threshold := os.environ.get("QUARRY_SCRAPING_FALLBACK_THRESHOLD"):
        cfg.scraping.fallback_threshold = _positive(
            threshold, "QUARRY_SCRAPING_FALLBACK_THRESHOLD"
        )
    if timeout := os.environ.get("QUARRY_RENDER_TIMEOUT"):
        cfg.scraping.render_timeout = _positive(timeout, "QUARRY_RENDER_TIMEOUT", float)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuarryConfig:
    """Load and return a merged *QuarryConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *quarry.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *QuarryConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields or a
            numeric setting is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.quarry/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# quarry global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
