"""Tools that are installed by downloading and running the vendor installer."""
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

from winstrap.config import PackageEntry
from winstrap.output import RunLog
from winstrap.state import StateError, get_installed_version, record_installed_version

RELEASE_API_TIMEOUT = 15
CHUNK_SIZE = 1024 * 1024


@dataclass
class Release:
    url: str
    version: str | None = None
    fallback: bool = False


def resolve_release(entry: PackageEntry, log: RunLog) -> Release:
    """Find the installer URL and version to use for an entry.

    Entries with a plain ``url`` have no version. Entries with ``release_api``
    ask GitHub for the latest release and fall back to the hardcoded URL and
    version if that fails.
    """
    if not entry.release_api:
        return Release(url=entry.url)

    fallback = Release(url=entry.fallback_url, version=entry.fallback_version, fallback=True)
    pattern = re.compile(entry.asset_pattern or r'\.exe$', re.IGNORECASE)

    try:
        response = requests.get(
            entry.release_api,
            headers={'Accept': 'application/vnd.github+json'},
            timeout=RELEASE_API_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        log.warning(f'Could not query latest {entry.name} release ({e}), using {fallback.version}')
        return fallback

    if not isinstance(data, dict):
        log.warning(f'Unexpected release data for {entry.name}, using {fallback.version}')
        return fallback

    for asset in data.get('assets') or []:
        if pattern.search(asset.get('name', '')) and asset.get('browser_download_url'):
            return Release(url=asset['browser_download_url'], version=data.get('tag_name'))

    log.warning(f'No asset matching {pattern.pattern} in latest {entry.name} release, using {fallback.version}')
    return fallback


def installer_file_name(url: str, fallback: str) -> str:
    name = unquote(Path(urlparse(url).path).name)
    return name or fallback


def download(url: str, dest: Path):
    """Stream a URL to a file."""
    with requests.get(url, stream=True) as response:
        response.raise_for_status()
        with open(dest, 'wb') as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)


def run_installer(path: Path, args: tuple[str, ...] = ()) -> int:
    """Run an installer and wait for it. Returns its exit code."""
    return subprocess.run([str(path), *args]).returncode


def install_download(entry: PackageEntry, log: RunLog, present: bool = False, update: bool = False) -> bool:
    """Download and install one tool. Returns True if successful or nothing to do."""
    if present and not update:
        log.info(f'{entry.name} already installed')
        return True

    release = resolve_release(entry, log)

    if present:
        if release.version is None:
            log.info(f'{entry.name} publishes no version, reinstalling latest')
        else:
            try:
                recorded = get_installed_version(entry.id)
            except StateError as e:
                log.warning(f'{e}, treating installed {entry.name} version as unknown')
                recorded = None
            if recorded == release.version:
                log.info(f'{entry.name} is up to date ({recorded})')
                return True
            if release.fallback and recorded is not None:
                log.warning(f'Latest {entry.name} release unknown, keeping installed {recorded}')
                return True
            if recorded is None:
                log.warning(f'Installed {entry.name} version unknown, reinstalling {release.version}')
            else:
                log.info(f'Updating {entry.name} {recorded} -> {release.version}')

    with tempfile.TemporaryDirectory() as tmpdir:
        dest = Path(tmpdir) / installer_file_name(release.url, f'{entry.id}-setup.exe')

        log.info(f'Downloading {entry.name} from {release.url}')
        try:
            download(release.url, dest)
        except (requests.RequestException, OSError) as e:
            log.error(f'Failed to download {entry.name}: {e}')
            return False

        log.info(f'Running {entry.name} installer')
        log.detail(' '.join([str(dest), *entry.silent_args]))
        try:
            returncode = run_installer(dest, entry.silent_args)
        except OSError as e:
            log.error(f'Failed to run {entry.name} installer: {e}')
            return False

    if returncode != 0:
        log.error(f'{entry.name} installer exited with code {returncode}')
        return False

    if not release.version:
        log.success(f'Installed {entry.name}')
        return True

    try:
        record_installed_version(entry.id, release.version)
    except (OSError, StateError) as e:
        log.warning(f'Could not record {entry.name} version: {e}')
    log.success(f'Installed {entry.name} {release.version}')
    return True
