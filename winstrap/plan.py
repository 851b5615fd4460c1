from collections.abc import Container
from dataclasses import dataclass

from winstrap.config import PackageEntry
from winstrap.output import RunLog


@dataclass(frozen=True)
class InstallationPlan:
    to_install: tuple[PackageEntry, ...] = ()
    already_installed: tuple[PackageEntry, ...] = ()


def _by_name(entry: PackageEntry) -> str:
    return entry.name.casefold()


def compute_plan(
    catalog: list[PackageEntry],
    installed: Container[str],
    extras: list[PackageEntry] | None = None,
) -> InstallationPlan:
    """Split entries into what needs installing and what is already there.

    Catalog entries are sorted by display name. Extras (tools installed outside
    winget) keep their order and come after the catalog entries to install,
    unless their own check put them in ``installed``.
    """
    to_install = sorted((e for e in catalog if e.id not in installed), key=_by_name)
    present = [e for e in catalog if e.id in installed]

    extras = extras or []
    to_install.extend(e for e in extras if e.id not in installed)
    present.extend(e for e in extras if e.id in installed)

    return InstallationPlan(
        to_install=tuple(to_install),
        already_installed=tuple(sorted(present, key=_by_name)),
    )


def print_plan(plan: InstallationPlan, log: RunLog):
    """Print the plan the same way for dry runs and real runs."""
    if plan.already_installed:
        log.header('Already installed:')
        for entry in plan.already_installed:
            log.info(f'  {entry.name} ({entry.id})')

    if plan.to_install:
        log.header('To install:')
        for entry in plan.to_install:
            log.added(f'{entry.name} ({entry.id})')
    else:
        log.info('Everything in the catalog is installed')
