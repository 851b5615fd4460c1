"""Work out which catalog packages are already on the machine.

winget has no stable machine-readable listing on every version we care about,
so the table printed by ``winget list`` is parsed as text and topped up with
cheap checks for executables on PATH and known install locations.
"""
import re
import shutil
from pathlib import Path

from winstrap.config import Catalog, expand_path
from winstrap.output import RunLog
from winstrap.packages import list_installed, list_upgradable

HEADER_TOKEN = 'Id'
TRUNCATION_SENTINEL = '…'
CORRUPTED_MARKERS = ('â€¦', 'Ã', '�')

_SEPARATOR = re.compile(r'^\s*-{3,}\s*$')
_COLUMN_GAP = re.compile(r'\s{2,}')
_VERSION = re.compile(r'^(?:[<>]=?\s*)?v?\d+(?:[.\-_+]\w+)*$', re.IGNORECASE)


def _visible(line: str) -> str:
    # winget redraws its progress spinner with carriage returns
    return line.rsplit('\r', 1)[-1].rstrip()


def is_valid_id(candidate: str) -> bool:
    """Reject header echoes, versions, truncated and mis-decoded ids."""
    if not candidate or candidate == HEADER_TOKEN:
        return False
    if _VERSION.match(candidate):
        return False
    if candidate.endswith(TRUNCATION_SENTINEL):
        return False
    return not any(marker in candidate for marker in CORRUPTED_MARKERS)


def parse_listing(text: str) -> list[str]:
    """Extract package ids from a winget table (``winget list`` / ``winget upgrade``).

    Rows before the dashed separator are ignored. The id is the second column,
    columns being separated by two or more spaces. Rows that do not yield a
    usable id are dropped.
    """
    ids = []
    in_table = False

    for raw_line in (text or '').splitlines():
        line = _visible(raw_line)
        if not in_table:
            if _SEPARATOR.match(line):
                in_table = True
            continue

        if not line.strip():
            continue

        fields = _COLUMN_GAP.split(line.strip())
        if len(fields) < 2:
            continue

        candidate = fields[1].strip()
        if is_valid_id(candidate):
            ids.append(candidate)

    return ids


def normalize_id(raw: str, aliases: dict[str, str] | None = None) -> str:
    """Canonical form of a package id. Alias lookup ignores case."""
    value = raw.strip()
    if not aliases:
        return value
    lookup = {k.casefold(): v for k, v in aliases.items()}
    return lookup.get(value.casefold(), value)


class InstalledSet:
    """Set of canonical package ids with case-insensitive membership."""

    def __init__(self, aliases: dict[str, str] | None = None, ids=()):
        self.aliases = dict(aliases or {})
        self._ids: dict[str, str] = {}
        self.update(ids)

    def normalize(self, raw: str) -> str:
        return normalize_id(raw, self.aliases)

    def add(self, raw: str):
        canonical = self.normalize(raw)
        if canonical:
            self._ids.setdefault(canonical.casefold(), canonical)

    def update(self, ids):
        for raw in ids:
            self.add(raw)

    def __contains__(self, raw) -> bool:
        if not isinstance(raw, str):
            return False
        return self.normalize(raw).casefold() in self._ids

    def __iter__(self):
        return iter(self._ids.values())

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f'InstalledSet({sorted(self._ids.values())!r})'


def find_commands(checks: dict[str, str]) -> list[str]:
    """Ids whose executable is on PATH."""
    return [pkg_id for command, pkg_id in checks.items() if shutil.which(command)]


def find_paths(checks: dict[str, str]) -> list[str]:
    """Ids whose known install location exists."""
    found = []
    for raw_path, pkg_id in checks.items():
        path = expand_path(raw_path)
        if path and Path(path).exists():
            found.append(pkg_id)
    return found


def scan_installed(catalog: Catalog, log: RunLog) -> InstalledSet:
    """Build the set of installed ids. Never raises on a failed listing."""
    installed = InstalledSet(catalog.aliases)

    listing = list_installed()
    if listing is None:
        log.warning('Could not read winget list output, relying on executable and path checks only')
    else:
        ids = parse_listing(listing)
        if not ids:
            log.warning('winget list output had no recognizable rows, relying on executable and path checks only')
        for raw in ids:
            log.detail(f'winget lists {raw}')
        installed.update(ids)

    command_checks = dict(catalog.command_checks)
    command_checks.update({entry.command: entry.id for entry in catalog.npm})
    for pkg_id in find_commands(command_checks):
        log.detail(f'Found {pkg_id} on PATH')
        installed.add(pkg_id)

    path_checks = dict(catalog.path_checks)
    path_checks.update({entry.path: entry.id for entry in catalog.downloads})
    for pkg_id in find_paths(path_checks):
        log.detail(f'Found {pkg_id} install location')
        installed.add(pkg_id)

    log.info(f'Detected {len(installed)} installed packages')
    return installed


def scan_upgradable(catalog: Catalog, log: RunLog) -> InstalledSet | None:
    """Ids winget reports a newer version for, or None if that is unknown."""
    listing = list_upgradable()
    if listing is None:
        log.warning('Could not read winget upgrade output, every installed package will be offered an upgrade')
        return None
    return InstalledSet(catalog.aliases, parse_listing(listing))
