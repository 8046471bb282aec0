"""Domain -> folder suggestions and wildcard domain matching."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .constants import BUNDLED_DOMAIN_RULES_PATH, DATA_DIR, DOMAIN_RULES_FILENAME
from .models import Category, FolderAnalysis, FolderMap

logger = logging.getLogger(__name__)


def matches_domain_pattern(domain: str, pattern: str) -> bool:
    """Match a domain against an exact domain or a ``*.sub.domain`` pattern.

    The wildcard stands for exactly one label: ``a.example.com`` matches
    ``*.example.com`` while ``example.com`` and ``a.b.example.com`` do not.
    """
    domain = domain.lower()
    pattern = pattern.lower()
    if not pattern.startswith("*."):
        return domain == pattern
    suffix = pattern[1:]
    if not domain.endswith(suffix):
        return False
    label = domain[: -len(suffix)]
    return bool(label) and "." not in label


def lookup_domain_folder(domain: str, domain_map: Mapping[str, str]) -> str | None:
    """Find the folder for ``domain``: exact entry first, then wildcard entries in order."""
    if not domain:
        return None
    domain = domain.lower()
    folder = domain_map.get(domain)
    if folder:
        return folder
    for pattern, candidate in domain_map.items():
        if pattern.startswith("*.") and matches_domain_pattern(domain, pattern):
            return candidate
    return None


@dataclass(frozen=True)
class DomainRules:
    """Regex -> related domains tables driving suggestions."""

    domain_patterns: dict[str, list[str]] = field(default_factory=dict)
    folder_patterns: dict[str, list[str]] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.domain_patterns and not self.folder_patterns


def _rules_table(raw, name: str, source: Path) -> dict[str, list[str]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{name}' must be a mapping")
    table: dict[str, list[str]] = {}
    for pattern, domains in raw.items():
        pattern = str(pattern)
        try:
            re.compile(pattern)
        except re.error as exc:
            logger.warning("Ignoring invalid pattern %r in %s: %s", pattern, source, exc)
            continue
        if isinstance(domains, str):
            domains = [domains]
        table[pattern] = [str(d).lower() for d in domains or []]
    return table


def _rules_candidates(data_dir: Path | None, home_dir: Path | None) -> list[Path]:
    candidates = []
    if data_dir is not None:
        candidates.append(Path(data_dir) / DOMAIN_RULES_FILENAME)
    candidates.append(Path(home_dir or DATA_DIR) / DOMAIN_RULES_FILENAME)
    candidates.append(BUNDLED_DOMAIN_RULES_PATH)
    return candidates


def load_domain_rules(data_dir: Path | None = None, home_dir: Path | None = None) -> DomainRules:
    """Load the first domain rule file found.

    Looks in the data directory, then the user's home data directory, then
    the bundled defaults.  A missing or malformed file gives empty rules.
    """
    for path in _rules_candidates(data_dir, home_dir):
        if not path.exists():
            continue
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ValueError("top level must be a mapping")
            rules = DomainRules(
                domain_patterns=_rules_table(raw.get("domain_patterns"), "domain_patterns", path),
                folder_patterns=_rules_table(raw.get("folder_patterns"), "folder_patterns", path),
            )
        except (OSError, yaml.YAMLError, ValueError) as exc:
            logger.warning("Could not load domain rules from %s: %s", path, exc)
            return DomainRules()
        logger.debug("Loaded domain rules from %s", path)
        return rules

    logger.warning("No domain rules file found; domain suggestions are disabled")
    return DomainRules()


class DomainMapper:
    """Suggest folders for domains related to what list folders already receive."""

    def __init__(self, folders: Iterable[FolderAnalysis], rules: DomainRules) -> None:
        self.folders = list(folders)
        self.rules = rules
        self._owned = {d.lower() for f in self.folders for d in f.domains}

    def generate_mappings(self) -> FolderMap:
        mappings = FolderMap()
        for folder in self.folders:
            if folder.category is not Category.LIST:
                continue
            for domain in sorted(folder.domains):
                self._suggest(mappings, self.rules.domain_patterns, domain, folder.name)
            self._suggest(mappings, self.rules.folder_patterns, folder.name, folder.name)
        return mappings

    def has_folder_for_domain(self, domain: str) -> bool:
        return domain.lower() in self._owned

    def _suggest(
        self,
        mappings: FolderMap,
        table: dict[str, list[str]],
        subject: str,
        folder_name: str,
    ) -> None:
        for pattern, related in table.items():
            if not re.search(pattern, subject, re.IGNORECASE):
                continue
            for domain in related:
                if self.has_folder_for_domain(domain):
                    continue
                if mappings.add(domain, folder_name):
                    logger.debug("Suggesting %s -> %s (matched %s)", domain, folder_name, pattern)
