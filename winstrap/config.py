import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from winstrap.constants import CATALOG_FILE

SOURCES = ('winget', 'npm', 'download')

_ENV_VAR = re.compile(r'%([^%]+)%')


class CatalogError(ValueError):
    """Raised when the catalog file is missing or malformed."""


@dataclass(frozen=True)
class PackageEntry:
    """One piece of software to install."""

    name: str
    id: str
    source: str = 'winget'
    command: str | None = None
    path: str | None = None
    url: str | None = None
    release_api: str | None = None
    asset_pattern: str | None = None
    fallback_url: str | None = None
    fallback_version: str | None = None
    silent_args: tuple[str, ...] = ()


@dataclass
class Catalog:
    """Everything winstrap acts on, loaded once from catalog.yaml."""

    packages: list[PackageEntry] = field(default_factory=list)
    npm: list[PackageEntry] = field(default_factory=list)
    downloads: list[PackageEntry] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)
    command_checks: dict[str, str] = field(default_factory=dict)
    path_checks: dict[str, str] = field(default_factory=dict)
    bloatware_names: list[str] = field(default_factory=list)
    bloatware_patterns: list[str] = field(default_factory=list)
    configs: dict[str, str] = field(default_factory=dict)

    @property
    def extras(self) -> list[PackageEntry]:
        """Entries installed outside winget."""
        return self.npm + self.downloads


def expand_path(value: str) -> str | None:
    """Expand ``%VAR%`` and a leading ``~``. Returns None if a variable is unset."""
    missing = []

    def replace(match):
        name = match.group(1)
        if name not in os.environ:
            missing.append(name)
            return match.group(0)
        return os.environ[name]

    expanded = _ENV_VAR.sub(replace, value)
    if missing:
        return None
    if expanded.startswith('~'):
        expanded = str(Path.home()) + expanded[1:]
    return expanded.replace('\\', os.sep)


def _parse_entry(raw, source: str) -> PackageEntry:
    if not isinstance(raw, dict):
        raise CatalogError(f'Invalid {source} entry (must be a mapping): {raw!r}')
    name = raw.get('name')
    pkg_id = raw.get('id')
    if not name or not pkg_id:
        raise CatalogError(f'{source} entry needs both name and id: {raw!r}')

    entry = PackageEntry(
        name=str(name),
        id=str(pkg_id),
        source=source,
        command=raw.get('command'),
        path=raw.get('path'),
        url=raw.get('url'),
        release_api=raw.get('release_api'),
        asset_pattern=raw.get('asset_pattern'),
        fallback_url=raw.get('fallback_url'),
        fallback_version=raw.get('fallback_version'),
        silent_args=tuple(str(a) for a in raw.get('silent_args', [])),
    )

    if source == 'npm' and not entry.command:
        raise CatalogError(f'npm entry {entry.name} needs a command to detect it')
    if source == 'download':
        if not entry.path:
            raise CatalogError(f'Download entry {entry.name} needs an install path to detect it')
        if not entry.url and not (entry.release_api and entry.fallback_url):
            raise CatalogError(f'Download entry {entry.name} needs a url, or release_api with fallback_url')
    return entry


def _mapping(data: dict, key: str) -> dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise CatalogError(f'{key} must be a mapping')
    return {str(k): str(v) for k, v in value.items()}


def _string_list(data: dict, key: str) -> list[str]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise CatalogError(f'{key} must be a list')
    return [str(v) for v in value]


def parse_catalog(data: dict) -> Catalog:
    """Build a Catalog from already-parsed YAML."""
    if not isinstance(data, dict):
        raise CatalogError('Catalog must be a mapping')

    catalog = Catalog(
        packages=[_parse_entry(p, 'winget') for p in data.get('packages') or []],
        npm=[_parse_entry(p, 'npm') for p in data.get('npm') or []],
        downloads=[_parse_entry(p, 'download') for p in data.get('downloads') or []],
        aliases=_mapping(data, 'aliases'),
        command_checks=_mapping(data, 'command_checks'),
        path_checks=_mapping(data, 'path_checks'),
        configs=_mapping(data, 'configs'),
    )

    bloatware = data.get('bloatware') or {}
    if not isinstance(bloatware, dict):
        raise CatalogError('bloatware must be a mapping with names and patterns')
    catalog.bloatware_names = _string_list(bloatware, 'names')
    catalog.bloatware_patterns = _string_list(bloatware, 'patterns')

    seen = set()
    for entry in catalog.packages + catalog.extras:
        key = entry.id.casefold()
        if key in seen:
            raise CatalogError(f'Duplicate package id: {entry.id}')
        seen.add(key)

    # An alias target that is also an alias source would make rewriting
    # depend on how many times it is applied.
    lookup = {k.casefold(): v for k, v in catalog.aliases.items()}
    for raw, target in catalog.aliases.items():
        chained = lookup.get(target.casefold())
        if chained is not None and chained.casefold() != target.casefold():
            raise CatalogError(f'Alias target {target} (from {raw}) is itself aliased to {chained}')

    return catalog


def load_catalog(path: Path | None = None) -> Catalog:
    """Load the catalog. Defaults to the one bundled with winstrap."""
    path = path or CATALOG_FILE
    if not path.exists():
        raise CatalogError(f'Catalog not found: {path}')
    with open(path, encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CatalogError(f'Invalid YAML in {path}: {e}') from e
    return parse_catalog(data)
