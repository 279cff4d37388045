"""YAML config loader — reads scanner-config.yml into ScannerConfig."""

from pathlib import Path

import yaml

from aiscan.schemas.config import ScannerConfig


def load_config(path: str | Path | None = None) -> ScannerConfig:
    """Load and validate a scanner config file.

    ``None`` returns the built-in defaults. Raises ``FileNotFoundError`` if
    the path doesn't exist and ``pydantic.ValidationError`` if the YAML
    content is invalid.
    """
    if path is None:
        return ScannerConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    # An empty file loads as None
    if raw is None:
        return ScannerConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # Sections with every key commented out load as None; normalize to defaults.
    for key in ("fetch", "limits", "models", "delivery", "rate_limit"):
        if key in raw and raw[key] is None:
            del raw[key]

    fetch = raw.get("fetch")
    if isinstance(fetch, dict) and "sitemap_paths" in fetch:
        paths = fetch["sitemap_paths"] or []
        fetch["sitemap_paths"] = [p for p in paths if p]

    return ScannerConfig(**raw)
