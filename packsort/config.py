from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import yaml

from .classify import MatchMode, RuleError, RuleSet

DATA_PATH = "data/custom_project"
CONFIG_NAME = "config.json"
CONFIG_FILE = f"{DATA_PATH}/{CONFIG_NAME}"
DEFAULT_ROOTS = (".",)

FIXED_TABLE = {
    "lang": "RP/texts",
    "mcfunction": "BP/functions",
    "mcstructure": "BP/structures",
    "wav": "RP/sounds",
    "ogg": "RP/sounds",
    "fsb": "RP/sounds",
    "mp4": "RP/sounds",
    "png": "RP/textures",
    "tga": "RP/textures",
    "bpac.json": "BP/animation_controllers",
    "rpac.json": "RP/animation_controllers",
    "bpa.json": "BP/animations",
    "rpa.json": "RP/animation",
    "bpe.json": "BP/entities",
    "rpe.json": "RP/entity",
    "bpb.json": "BP/blocks",
    "bpi.json": "BP/items",
    "i.json": "BP/items",
    "rpi.json": "RP/item",
    "biome.json": "BP/biomes",
    "f.json": "BP/features",
    "fr.json": "BP/feature_rules",
    "at.json": "RP/attachables",
    "fog.json": "RP/fogs",
    "geo.json": "RP/models/entity",
    "rc.json": "RP/render_controllers",
    "sr.json": "BP/spawn_rules",
    "p.json": "RP/particles",
    "r.json": "BP/recipes",
    "lt.json": "BP/loot_tables",
    "tt.json": "BP/trading",
}

YAML_SUFFIXES = {".yml", ".yaml"}


@dataclass(frozen=True)
class ExportConfig:
    rules: RuleSet
    roots: tuple[str, ...]
    source: Path | None = None


class ConfigError(RuntimeError):
    pass


def builtin_rules() -> RuleSet:
    return RuleSet.from_mapping(FIXED_TABLE, mode=MatchMode.extension)


def _read_document(path: Path) -> dict:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as error:
        raise ConfigError(f'Unable to parse "{path}": {error}') from error
    except OSError as error:
        raise ConfigError(f'Unable to read "{path}": {error}') from error

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as error:
        raise ConfigError(f'Unable to parse "{path}": {error}') from error

    if not isinstance(data, dict):
        raise ConfigError(f'Config file "{path}" must contain an object.')
    return data


def _parse_rules(data: dict, path: Path) -> RuleSet:
    mapping = data.get("extensions_map")
    if not isinstance(mapping, dict):
        raise ConfigError(f'Failed to parse "extensions_map" property in config file: "{path}"')
    try:
        return RuleSet.from_mapping(mapping, mode=MatchMode.suffix)
    except RuleError as error:
        raise ConfigError(f'Invalid "extensions_map" in config file "{path}": {error}') from error


def _parse_roots(data: dict, path: Path) -> tuple[str, ...]:
    roots = data.get("roots")
    if not isinstance(roots, list) or not all(isinstance(item, str) for item in roots):
        raise ConfigError(f'Failed to parse "roots" property in config file: "{path}"')
    return tuple(roots)


def load_config(
    working_dir: Path,
    config_path: Path | None = None,
    builtin: bool = False,
    data_path: str = DATA_PATH,
) -> ExportConfig:
    """Load the rule set and source roots for an export run.

    With ``builtin`` the fixed extension table is used and the config file is
    optional; when it exists only its ``roots`` are read. Without an explicit
    ``config_path`` the file is looked up in ``<working_dir>/<data_path>``.
    """
    path = config_path if config_path is not None else working_dir / data_path / CONFIG_NAME

    if builtin:
        if not path.exists():
            return ExportConfig(rules=builtin_rules(), roots=DEFAULT_ROOTS)
        data = _read_document(path)
        roots = _parse_roots(data, path) if "roots" in data else DEFAULT_ROOTS
        return ExportConfig(rules=builtin_rules(), roots=roots, source=path)

    data = _read_document(path)
    return ExportConfig(rules=_parse_rules(data, path), roots=_parse_roots(data, path), source=path)
