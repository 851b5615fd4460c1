from dataclasses import dataclass
from pathlib import Path

import typer
from rich.markup import escape

from winstrap import __version__
from winstrap.bloatware import remove_bloatware
from winstrap.bootstrap import EnvironmentCheckError, check_environment
from winstrap.config import Catalog, CatalogError, load_catalog
from winstrap.constants import LOG_DIR
from winstrap.downloads import install_download
from winstrap.dotfiles import deploy_configs, get_config_pairs
from winstrap.output import RunLog, error
from winstrap.packages import install_npm_tool, install_package
from winstrap.plan import InstallationPlan, compute_plan, print_plan
from winstrap.scanner import scan_installed, scan_upgradable

app = typer.Typer(
    name='winstrap',
    help='Set up a Windows development workstation',
    add_completion=False,
    context_settings={
        'help_option_names': ['--help', '-h'],
    },
)


@dataclass
class RunOptions:
    skip_removal: bool = False
    skip_install: bool = False
    skip_configs: bool = False
    dry_run: bool = False
    update: bool = False
    catalog_path: Path | None = None


def version_callback(value: bool):
    if value:
        typer.echo(f'winstrap {__version__}')
        raise typer.Exit()


def install_all(plan: InstallationPlan, catalog: Catalog, log: RunLog, update: bool) -> tuple[int, int]:
    """Install everything the plan is missing, and upgrade in update mode.

    Returns (succeeded, failed).
    """
    succeeded = failed = 0

    def tally(ok: bool):
        nonlocal succeeded, failed
        if ok:
            succeeded += 1
        else:
            failed += 1

    missing = [e for e in plan.to_install if e.source == 'winget']
    if missing:
        log.header('Installing packages:')
        for entry in missing:
            tally(install_package(entry, log))

    if update:
        present = [e for e in plan.already_installed if e.source == 'winget']
        upgradable = scan_upgradable(catalog, log)
        if upgradable is not None:
            present = [e for e in present if e.id in upgradable]
        if present:
            log.header('Upgrading packages:')
            for entry in present:
                tally(install_package(entry, log, upgrade=True))
        else:
            log.info('All installed packages are up to date')

    npm_tools = [e for e in plan.to_install if e.source == 'npm']
    if update:
        npm_tools += [e for e in plan.already_installed if e.source == 'npm']
    if npm_tools:
        log.header('Installing npm tools:')
        for entry in npm_tools:
            tally(install_npm_tool(entry, log, update=update))

    downloads = [(e, False) for e in plan.to_install if e.source == 'download']
    downloads += [(e, True) for e in plan.already_installed if e.source == 'download']
    if downloads:
        log.header('Installing downloaded tools:')
        for entry, present in downloads:
            tally(install_download(entry, log, present=present, update=update))

    return succeeded, failed


def run(log: RunLog, options: RunOptions):
    """One pass: check, scan, plan, remove, install, deploy configs."""
    catalog = load_catalog(options.catalog_path)
    elevated = check_environment(log, options.dry_run)

    log.header('Scanning installed software:')
    installed = scan_installed(catalog, log)
    plan = compute_plan(catalog.packages, installed, catalog.extras)
    print_plan(plan, log)

    if options.skip_removal:
        log.info('Skipping bloatware removal')
    else:
        log.header('Removing bloatware:')
        removed, failed = remove_bloatware(
            catalog.bloatware_names,
            catalog.bloatware_patterns,
            log,
            dry_run=options.dry_run,
            all_users=elevated,
        )
        if not options.dry_run:
            log.info(f'Removed {len(removed)} packages, {len(failed)} failed')

    if options.skip_install:
        log.info('Skipping installs')
    elif not options.dry_run:
        succeeded, failed = install_all(plan, catalog, log, options.update)
        log.info(f'Installed {succeeded} packages, {failed} failed')

    if options.skip_configs:
        log.info('Skipping config files')
    else:
        log.header('Deploying config files:')
        deploy_configs(get_config_pairs(catalog), log, dry_run=options.dry_run)


@app.command()
def main(
    skip_removal: bool = typer.Option(False, '--skip-removal', help='Do not remove bloatware'),
    skip_install: bool = typer.Option(False, '--skip-install', help='Do not install or upgrade software'),
    skip_configs: bool = typer.Option(False, '--skip-configs', help='Do not copy config files'),
    dry_run: bool = typer.Option(
        False, '--dry-run', '--scan-only', '-n', help='Show what would be done without changing anything'
    ),
    verbose: bool = typer.Option(False, '--verbose', '-V', help='Log commands and detection details'),
    update: bool = typer.Option(False, '--update', '-u', help='Also upgrade software that is already installed'),
    catalog_path: Path = typer.Option(None, '--catalog', help='Use a different catalog file'),
    version: bool = typer.Option(
        False, '--version', '-v', callback=version_callback, is_eager=True, help='Show version'
    ),
):
    """Remove bloatware, install developer tools and copy their configs."""
    options = RunOptions(
        skip_removal=skip_removal,
        skip_install=skip_install,
        skip_configs=skip_configs,
        dry_run=dry_run,
        update=update,
        catalog_path=catalog_path,
    )

    log = RunLog(LOG_DIR, verbose=verbose)
    try:
        log.open()
    except OSError as e:
        error(escape(f'Cannot open log file in {LOG_DIR}: {e}'))
        raise typer.Exit(1)

    exit_code = 0
    with log:
        log.info(f'winstrap {__version__}, logging to {log.path}')
        try:
            run(log, options)
        except (CatalogError, EnvironmentCheckError) as e:
            log.error(str(e))
            exit_code = 1
        except Exception as e:
            log.error(f'Unexpected error: {type(e).__name__}: {e}')
            exit_code = 1

        if exit_code:
            log.error('Setup aborted')
        elif dry_run:
            log.warning('Dry run - no changes made')
        elif log.counts['ERROR']:
            log.warning(f'Setup finished with {log.counts["ERROR"]} errors, see {log.path}')
        else:
            log.success('Setup complete')

    if exit_code:
        raise typer.Exit(exit_code)


if __name__ == '__main__':
    app()
