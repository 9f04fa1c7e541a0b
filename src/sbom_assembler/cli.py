"""
Command Line Interface for the SBOM assembler.

This module provides the main CLI entry point using Click framework.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml

from . import __version__
from .config import AppConfig, ConfigManager, sample_config
from .config.config_manager import MATCH_STRATEGIES, MERGE_MODES, OUTPUT_SPECS
from .formats import detect
from .logging import LoggerConfig, setup_logging as configure_logging
from .orchestrator import OrchestrationManager

STRATEGY_FLAGS = ("flat_merge", "hierarchical_merge", "assembly_merge", "augment_merge")
SECRET_KEYS = ("api_key",)


@click.group()
@click.version_option(version=__version__, prog_name="sbom-assembler")
@click.option(
    '--config', '-c',
    type=click.Path(exists=True, path_type=Path),
    help='Path to configuration file'
)
@click.option(
    '--verbose', '-v',
    count=True,
    help='Increase verbosity (use -v, -vv, or -vvv)'
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], verbose: int) -> None:
    """
    SBOM Assembler - Merge CycloneDX or SPDX SBOMs into one document.

    Inputs are combined with one of four strategies: flat, assembly,
    hierarchical (the default) or augment.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose

    setup_logging(verbose)


@cli.command()
@click.argument('inputs', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', 'output_file', type=click.Path(dir_okay=False),
              help='Output file; standard output when omitted')
@click.option('--name', '-n', help='Name of the assembled application')
@click.option('--app-version', help='Version of the assembled application')
@click.option('--type', '-t', 'primary_purpose', help='Type of the assembled application (e.g. application)')
@click.option('--flat-merge', is_flag=True, help='Flat merge: all components at the top level')
@click.option('--hierarchical-merge', is_flag=True, help='Hierarchical merge: components nested under their primaries')
@click.option('--assembly-merge', is_flag=True, help='Assembly merge: primaries and components kept side by side')
@click.option('--augment-merge', is_flag=True, help='Augment merge: enrich the primary SBOM with the inputs')
@click.option('--primary', 'primary_file', type=click.Path(exists=True, dir_okay=False),
              help='Primary SBOM for augment merge')
@click.option('--merge-mode', type=click.Choice(MERGE_MODES, case_sensitive=False),
              help='How augment merge treats fields already set on the primary')
@click.option('--match-strategy', type=click.Choice(MATCH_STRATEGIES, case_sensitive=False),
              help='Component matching strategy for augment merge')
@click.option('--strict-version', is_flag=True, help='Require exact version matches')
@click.option('--fuzzy-match', is_flag=True, help='Allow fuzzy name matching')
@click.option('--type-match/--no-type-match', default=None, help='Require component types to match')
@click.option('--min-confidence', type=click.IntRange(0, 100), help='Minimum match confidence (0-100)')
@click.option('--output-spec', type=click.Choice(OUTPUT_SPECS, case_sensitive=False),
              help='Output spec; must match the input spec')
@click.option('--output-spec-version', help='Output spec version (CycloneDX 1.4-1.6, SPDX 2.3)')
@click.option('--xml', '-x', 'as_xml', is_flag=True, help='Write CycloneDX XML')
@click.option('--json', '-j', 'as_json', is_flag=True, help='Write JSON')
@click.option('--output-format', type=click.Choice(['json', 'xml', 'yaml', 'tag-value', 'rdf'],
                                                   case_sensitive=False),
              help='Output file format')
@click.option('--upload', is_flag=True, help='Upload the result to Dependency-Track')
@click.option('--url', help='Dependency-Track API server URL')
@click.option('--api-key', help='Dependency-Track API key')
@click.option('--project-id', help='Dependency-Track project UUID')
@click.pass_context
def assemble(ctx: click.Context, inputs: Tuple[str, ...], **options: Any) -> None:
    """
    Assemble multiple SBOMs into one.

    All inputs must use the same spec; the file format of each input is
    detected from its content.

    Examples:

        # Hierarchical merge of two CycloneDX SBOMs
        sbom-assembler assemble -n app --app-version 1.0 a.cdx.json b.cdx.json -o app.cdx.json

        # Flat merge to XML
        sbom-assembler assemble --flat-merge -x -n app --app-version 1.0 a.cdx.json b.cdx.json

        # Augment a primary SBOM with scanner output
        sbom-assembler assemble --augment-merge --primary app.spdx.json scan.spdx.json -o out.spdx.json
    """
    try:
        cli_overrides = create_cli_overrides(**options)

        config_manager = ConfigManager(ctx.obj.get('config_file'))
        config = config_manager.load_config(cli_overrides)
        apply_logging_config(config, ctx.obj.get('verbose', 0))

        orchestrator = OrchestrationManager(config)
        results = orchestrator.assemble(list(inputs))

        display_results(results, ctx.obj.get('verbose', 0))

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if ctx.obj.get('verbose', 0) > 1:
            import traceback
            traceback.print_exc()
        sys.exit(1)


@cli.command()
def generate() -> None:
    """
    Print a sample configuration file.

    Values marked [REQUIRED] must be filled in; [OPTIONAL] values may be
    left as they are.
    """
    click.echo(yaml.safe_dump(sample_config(), default_flow_style=False, sort_keys=False))


@cli.command()
@click.option(
    '--format', '-f',
    type=click.Choice(['table', 'json', 'yaml'], case_sensitive=False),
    default='table',
    help='Output format for configuration display'
)
@click.pass_context
def config(ctx: click.Context, format: str) -> None:
    """
    Display current configuration settings.

    Shows the current configuration including defaults, file settings,
    and environment variable overrides. Secrets are masked.
    """
    try:
        config_manager = ConfigManager(ctx.obj.get('config_file'))
        # Identity checks only apply to an actual assembly.
        app_config = config_manager.load_config(require_identity=False)

        config_dict = masked_config(app_config)
        if format == 'json':
            click.echo(json.dumps(config_dict, indent=2, default=str))
        elif format == 'yaml':
            click.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False))
        else:
            display_config_table(config_dict)

    except Exception as e:
        click.echo(f"Error displaying configuration: {e}", err=True)
        sys.exit(1)


@cli.command(name='detect')
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def detect_command(files: Tuple[str, ...]) -> None:
    """
    Show the detected spec and file format of each FILE.
    """
    failed = False
    for file_path in files:
        try:
            spec, file_format = detect(file_path)
            click.echo(f"{file_path}: {spec} ({file_format})")
        except Exception as e:
            click.echo(f"{file_path}: Error: {e}", err=True)
            failed = True
    if failed:
        sys.exit(1)


def setup_logging(verbose: int) -> None:
    """Set up logging based on verbosity level."""
    if verbose == 0:
        level = "WARNING"
    elif verbose == 1:
        level = "INFO"
    else:
        level = "DEBUG"

    configure_logging(LoggerConfig(level=level), force=True)

    # Reduce noise from third-party libraries
    if verbose < 3:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)


def apply_logging_config(config: AppConfig, verbose: int) -> None:
    """Reconfigure logging from the loaded configuration; -v flags win over the file's level."""
    settings = config.logging
    if verbose == 0 and settings.level == "WARNING" and not settings.file and not settings.structured:
        return

    level = settings.level
    if verbose == 1:
        level = "INFO"
    elif verbose > 1:
        level = "DEBUG"

    configure_logging(LoggerConfig(
        level=level,
        file_path=settings.file,
        format_string=settings.format,
        max_file_size=settings.max_file_size,
        backup_count=settings.backup_count,
        enable_structured=settings.structured
    ), force=True)


def create_cli_overrides(
    output_file: Optional[str] = None,
    name: Optional[str] = None,
    app_version: Optional[str] = None,
    primary_purpose: Optional[str] = None,
    flat_merge: bool = False,
    hierarchical_merge: bool = False,
    assembly_merge: bool = False,
    augment_merge: bool = False,
    primary_file: Optional[str] = None,
    merge_mode: Optional[str] = None,
    match_strategy: Optional[str] = None,
    strict_version: bool = False,
    fuzzy_match: bool = False,
    type_match: Optional[bool] = None,
    min_confidence: Optional[int] = None,
    output_spec: Optional[str] = None,
    output_spec_version: Optional[str] = None,
    as_xml: bool = False,
    as_json: bool = False,
    output_format: Optional[str] = None,
    upload: bool = False,
    url: Optional[str] = None,
    api_key: Optional[str] = None,
    project_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create nested configuration overrides from CLI options.

    Options left unset do not override the configuration file. A strategy
    flag replaces whichever strategy the file selects.

    Raises:
        click.UsageError: If conflicting format flags are given
    """
    overrides: Dict[str, Any] = {}

    def put(section: str, key: str, value: Any) -> None:
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    put('app', 'name', name)
    put('app', 'version', app_version)
    put('app', 'primary_purpose', primary_purpose)

    chosen = {
        'flat_merge': flat_merge,
        'hierarchical_merge': hierarchical_merge,
        'assembly_merge': assembly_merge,
        'augment_merge': augment_merge
    }
    if any(chosen.values()):
        for flag in STRATEGY_FLAGS:
            put('assemble', flag, chosen[flag])
    put('assemble', 'primary_file', primary_file)
    put('assemble', 'merge_mode', merge_mode.lower() if merge_mode else None)

    put('matcher', 'strategy', match_strategy.lower() if match_strategy else None)
    put('matcher', 'strict_version', strict_version or None)
    put('matcher', 'fuzzy_match', fuzzy_match or None)
    put('matcher', 'type_match', type_match)
    put('matcher', 'min_confidence', min_confidence)

    if as_xml and as_json:
        raise click.UsageError("--xml and --json are mutually exclusive")
    file_format = output_format.lower() if output_format else None
    if as_xml or as_json:
        flag_format = 'xml' if as_xml else 'json'
        if file_format and file_format != flag_format:
            raise click.UsageError(f"--output-format {file_format} conflicts with --{flag_format}")
        file_format = flag_format

    put('output', 'file', output_file)
    put('output', 'spec', output_spec.lower() if output_spec else None)
    put('output', 'spec_version', output_spec_version)
    put('output', 'file_format', file_format)
    put('output', 'upload', upload or None)
    put('output', 'url', url)
    put('output', 'api_key', api_key)
    put('output', 'upload_project_id', project_id)

    return overrides


def masked_config(config: AppConfig) -> Dict[str, Any]:
    """Configuration as a dictionary with secret values hidden."""
    config_dict = config.to_dict()
    for section in config_dict.values():
        if not isinstance(section, dict):
            continue
        for key in SECRET_KEYS:
            if section.get(key):
                section[key] = '*' * 8  # Hide sensitive values
    return config_dict


def display_results(results: Dict[str, Any], verbose: int) -> None:
    """Display assembly results on stderr, leaving stdout to the SBOM."""
    if verbose == 0:
        return

    click.echo("\n" + "=" * 60, err=True)
    click.echo("SBOM ASSEMBLY RESULTS", err=True)
    click.echo("=" * 60, err=True)

    click.echo(f"Strategy: {results.get('strategy')}", err=True)
    click.echo(f"Spec: {results.get('spec')} ({results.get('file_format')})", err=True)
    click.echo(f"Inputs: {len(results.get('inputs', []))}", err=True)
    click.echo(f"Output: {results.get('output_file') or 'stdout'}", err=True)
    if results.get('uploaded'):
        click.echo("Uploaded: ✅ Dependency-Track", err=True)

    statistics = results.get('statistics', {})
    if statistics:
        click.echo("\nMerge Statistics:", err=True)
        for key in ('matched', 'added', 'skipped', 'added_edges', 'dropped_edges'):
            click.echo(f"  - {key.replace('_', ' ').capitalize()}: {statistics.get(key, 0)}", err=True)

    dangling = results.get('dangling_references', [])
    if dangling:
        click.echo(f"\nDangling references dropped: {len(dangling)}", err=True)
        if verbose > 1:
            for ref in dangling[:5]:  # Show first 5 references
                click.echo(f"  - {ref}", err=True)
            if len(dangling) > 5:
                click.echo(f"  ... and {len(dangling) - 5} more", err=True)

    click.echo(f"\nProcessing time: {results.get('processing_time', 0.0):.2f}s", err=True)
    click.echo("=" * 60, err=True)


def display_config_table(config_dict: Dict[str, Any]) -> None:
    """Display configuration in table format."""
    click.echo("\nCurrent Configuration:")
    click.echo("-" * 50)

    for section_name, section_config in config_dict.items():
        click.echo(f"\n[{section_name.capitalize()}]")
        for key, value in section_config.items():
            click.echo(f"  {key}: {value}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
