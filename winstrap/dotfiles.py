import shutil
from dataclasses import dataclass
from pathlib import Path

from winstrap.config import Catalog, expand_path
from winstrap.constants import CONFIGS_DIR
from winstrap.output import RunLog


@dataclass
class ConfigFile:
    """A bundled config file (or directory) and where it gets copied."""

    source: Path
    target: str
    is_dir: bool = False


def get_config_pairs(catalog: Catalog, configs_dir: Path = CONFIGS_DIR) -> list[ConfigFile]:
    """Resolve the catalog's config table against the bundled directory."""
    result = []
    for source_key, target in catalog.configs.items():
        # Trailing slash indicates directory
        is_dir = source_key.endswith('/')
        source = configs_dir / source_key.rstrip('/')
        result.append(ConfigFile(source=source, target=target, is_dir=is_dir))
    return result


def _written_files(pair: ConfigFile):
    """Yield (target, source name) for every file a pair would write."""
    if not pair.is_dir:
        yield pair.target, pair.source.name
        return
    if not pair.source.is_dir():
        return
    base = pair.target.rstrip('/\\')
    for path in sorted(pair.source.rglob('*')):
        if path.is_file():
            rel = path.relative_to(pair.source).as_posix()
            yield f'{base}/{rel}', f'{pair.source.name}/{rel}'


def _target_key(target: str) -> str:
    # Windows paths: either separator, any case
    return target.replace('\\', '/').casefold()


def check_conflicts(pairs: list[ConfigFile]) -> list[dict]:
    """Check for two configs writing the same file. Returns list of conflicts.

    Directory configs are expanded into the files they contain.
    """
    targets = {}
    conflicts = []

    for pair in pairs:
        for target, name in _written_files(pair):
            key = _target_key(target)
            if key in targets:
                conflicts.append({
                    'target': target,
                    'sources': [targets[key], name],
                })
            else:
                targets[key] = name

    return conflicts


def deploy_config(pair: ConfigFile, log: RunLog, dry_run: bool = False) -> bool:
    """Copy one config into place. Returns True if copied (or would be)."""
    if not pair.source.exists():
        log.warning(f'Bundled config not found: {pair.source}')
        return False

    if pair.is_dir and not pair.source.is_dir():
        log.warning(f"Config '{pair.source.name}/' has trailing slash but is not a directory")
        return False

    expanded = expand_path(pair.target)
    if expanded is None:
        log.warning(f'Cannot resolve destination {pair.target}, skipping {pair.source.name}')
        return False
    target = Path(expanded)

    if dry_run:
        log.added(f'{pair.source.name} -> {target} (dry run)')
        return True

    directory = target if pair.is_dir else target.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        log.error(f'Cannot create {directory}: {e}')
        return False

    try:
        if pair.is_dir:
            shutil.copytree(pair.source, target, dirs_exist_ok=True)
        else:
            shutil.copy2(pair.source, target)
    except OSError as e:
        log.error(f'Failed to copy {pair.source.name} to {target}: {e}')
        return False

    log.added(f'{pair.source.name} -> {target}')
    return True


def deploy_configs(pairs: list[ConfigFile], log: RunLog, dry_run: bool = False) -> bool:
    """Copy all configs. Returns False only if the table itself is unusable."""
    if not pairs:
        log.info('No config files to deploy')
        return True

    conflicts = check_conflicts(pairs)
    if conflicts:
        log.error('Config conflicts detected:')
        for c in conflicts:
            log.error(f'  {c["target"]} written by: {", ".join(c["sources"])}')
        return False

    for pair in pairs:
        deploy_config(pair, log, dry_run)

    return True
