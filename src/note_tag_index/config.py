"""インデックス設定の読み込み.

YAML 形式（トップレベルの `index:` マッピング）:

    index:
      root: notes
      extensions: [".md", ".txt"]
      exclude: ["**/.git/**", "**/archive/**"]
      skip_code_spans: false
      encoding: utf-8

root の相対パスは設定ファイルのディレクトリ基準で解決します。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml
from loguru import logger

from note_tag_index.adapters.local_adapter import DEFAULT_EXCLUDE, DEFAULT_EXTENSIONS
from note_tag_index.core.extractor import ExtractionPolicy

_KNOWN_KEYS = {"root", "extensions", "exclude", "skip_code_spans", "encoding"}


@dataclass(frozen=True)
class IndexConfig:
    """ノートコーパスのインデックス設定."""

    root: Path
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    skip_code_spans: bool = False
    encoding: str = "utf-8"

    @property
    def extraction_policy(self) -> ExtractionPolicy:
        return ExtractionPolicy(skip_code_spans=self.skip_code_spans)


def load_config(config_path: Path | str, root_override: Path | str | None = None) -> IndexConfig:
    """YAML ファイルからインデックス設定を読み込む.

    Args:
        config_path: 設定ファイルのパス
        root_override: 指定した場合は設定ファイルの root より優先する

    Returns:
        インデックス設定

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: YAML 形式が不正、または未知のキー・不正な値が含まれる場合
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {config_path}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(data)}")

    section = data.get("index", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'index' must be a mapping, got {type(section)}")

    unknown = set(section) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"Unknown config key(s) in {config_path}: {sorted(unknown)}")

    if root_override is not None:
        root = Path(root_override)
    else:
        root = Path(section.get("root", "."))
        if not root.is_absolute():
            root = config_path.parent / root

    skip_code_spans = section.get("skip_code_spans", False)
    if not isinstance(skip_code_spans, bool):
        raise ValueError(f"'skip_code_spans' must be a boolean, got {skip_code_spans!r}")

    config = IndexConfig(
        root=root.resolve(),
        extensions=tuple(_as_str_list(section.get("extensions", list(DEFAULT_EXTENSIONS)), "extensions")),
        exclude=tuple(_as_str_list(section.get("exclude", list(DEFAULT_EXCLUDE)), "exclude")),
        skip_code_spans=skip_code_spans,
        encoding=str(section.get("encoding", "utf-8")),
    )
    logger.info(f"Loaded index config from {config_path} (root={config.root})")
    return config


def _as_str_list(value: object, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' must be a list of strings, got {value!r}")
    return value
