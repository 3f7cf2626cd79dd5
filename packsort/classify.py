from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Mapping

TEMPLATE_SEPARATOR = "/"


class MatchMode(str, Enum):
    suffix = "suffix"
    extension = "extension"


class RuleError(RuntimeError):
    pass


@dataclass(frozen=True)
class Rule:
    suffix: str
    destination: tuple[str, ...]

    @classmethod
    def from_template(cls, suffix: str, template: str) -> "Rule":
        if not isinstance(suffix, str) or not suffix:
            raise RuleError("Rule suffix must be a non-empty string.")
        if not isinstance(template, str):
            raise RuleError(f"Destination for {suffix!r} must be a string.")
        segments = tuple(part for part in template.split(TEMPLATE_SEPARATOR) if part)
        if not segments:
            raise RuleError(f"Destination for {suffix!r} is empty.")
        return cls(suffix=suffix, destination=segments)

    @property
    def template(self) -> str:
        return TEMPLATE_SEPARATOR.join(self.destination)


@dataclass(frozen=True)
class RuleSet:
    """Immutable suffix -> destination table.

    In ``suffix`` mode a rule matches when its suffix ends the file name and
    the longest matching suffix wins. In ``extension`` mode the file name is
    reduced to a derived extension (see ``derive_extension``) which must equal
    a rule suffix exactly.
    """

    rules: tuple[Rule, ...]
    mode: MatchMode = MatchMode.suffix

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str], mode: MatchMode = MatchMode.suffix) -> "RuleSet":
        rules = [Rule.from_template(suffix, template) for suffix, template in mapping.items()]
        # Longest first so the first hit in suffix mode is the longest match.
        rules.sort(key=lambda rule: (-len(rule.suffix), rule.suffix))
        return cls(rules=tuple(rules), mode=mode)

    def match(self, file_name: str) -> Rule | None:
        if not file_name:
            return None

        if self.mode == MatchMode.extension:
            extension = derive_extension(file_name)
            for rule in self.rules:
                if rule.suffix == extension:
                    return rule
            return None

        for rule in self.rules:
            if file_name.endswith(rule.suffix):
                return rule
        return None

    def as_mapping(self) -> dict[str, str]:
        return {rule.suffix: rule.template for rule in self.rules}


def derive_extension(file_name: str) -> str:
    parts = file_name.split(".")
    if len(parts) >= 2 and parts[-1] == "json":
        extension = ".".join(parts[-2:])
    else:
        extension = parts[-1]
    return extension[1:] if extension.startswith("_") else extension


def is_bare_name(file_name: str, suffix: str) -> bool:
    token = suffix.lstrip(".")
    if not token:
        return False
    return file_name in (token, f"_{token}", f"_.{token}", f".{token}")


def classify(relative_path: str | PurePath, rules: RuleSet) -> Path | None:
    """Return the destination of ``relative_path`` or ``None`` when unmapped.

    ``relative_path`` is relative to a source root. A bare file (one named
    only after its suffix, e.g. ``entities/_bpe.json``) takes the name of its
    parent directory and moves one level up: ``BP/entities/entities.bpe.json``.
    """
    path = PurePath(relative_path)
    file_name = path.name
    if not file_name or path.anchor:
        return None

    rule = rules.match(file_name)
    if rule is None:
        return None

    if is_bare_name(file_name, rule.suffix):
        parent_name = path.parent.name
        if not parent_name:
            return None
        base_name = f"{parent_name}.{rule.suffix.lstrip('.')}"
        base_dir = path.parent.parent
    else:
        base_name = file_name
        base_dir = path.parent

    return Path(*rule.destination).joinpath(*base_dir.parts, base_name)
