import subprocess

from winstrap.output import RunLog


def _powershell(command: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        ['powershell', '-NoProfile', '-NonInteractive', '-Command', command],
        capture_output=True,
        text=True,
    )


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _scope(all_users: bool) -> str:
    # -AllUsers requires an elevated shell
    return ' -AllUsers' if all_users else ''


def find_appx_packages(name: str, all_users: bool = True) -> list[str]:
    """Full names of AppX packages matching a name or wildcard pattern."""
    result = _powershell(
        f'Get-AppxPackage{_scope(all_users)} -Name {_quote(name)} | Select-Object -ExpandProperty PackageFullName'
    )
    if result.returncode != 0:
        raise RuntimeError(result.stderr.strip() or f'Get-AppxPackage exit code {result.returncode}')
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def remove_appx_package(full_name: str, all_users: bool = True):
    """Remove an AppX package, for all users by default. Raises RuntimeError on failure."""
    result = _powershell(f'Remove-AppxPackage{_scope(all_users)} -Package {_quote(full_name)}')
    if result.returncode != 0:
        raise RuntimeError(result.stderr.strip() or f'Remove-AppxPackage exit code {result.returncode}')


def remove_bloatware(
    names: list[str],
    patterns: list[str],
    log: RunLog,
    dry_run: bool = False,
    all_users: bool = True,
) -> tuple[list[str], list[str]]:
    """Remove preinstalled packages by exact name, then by wildcard pattern.

    Every package is handled on its own; a failure is logged and the next one
    is tried. Returns (removed, failed) package names.

    With ``all_users`` False only the current user's packages are looked up
    and removed, which is what an unelevated shell is allowed to do.
    """
    removed_names = []
    failed = []
    seen = set()

    if not all_users:
        log.warning('Not elevated, only packages of the current user are checked')

    for target in list(names) + list(patterns):
        try:
            matches = find_appx_packages(target, all_users)
        except (RuntimeError, OSError) as e:
            log.error(f'Could not look up {target}: {e}')
            failed.append(target)
            continue

        if not matches:
            log.info(f'{target} not found')
            continue

        for full_name in matches:
            if full_name in seen:
                continue
            seen.add(full_name)

            if dry_run:
                log.removed(f'{full_name} (dry run)')
                continue

            try:
                remove_appx_package(full_name, all_users)
            except (RuntimeError, OSError) as e:
                log.error(f'Failed to remove {full_name}: {e}')
                failed.append(full_name)
                continue

            log.removed(full_name)
            removed_names.append(full_name)

    return removed_names, failed
