"""
Command-line interface for the IMAP manager.

CLI Structure:
    imap-manager run [--input items.json] [--param key=value ...]
    imap-manager check-config

``run`` reads a JSON array of input records, runs the configured operation for
each of them and prints ``{"main": [...], "error": [...]}`` to stdout. Logs go to
stderr so the output stays machine readable.
"""
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from imap_manager import __version__
from imap_manager.config import ConfigError
from imap_manager.config_loader import ConfigLoader
from imap_manager.config_schema import ManagerConfig
from imap_manager.credentials import IMAP, SMTP, CredentialStore
from imap_manager.errors import ImapManagerError
from imap_manager.execution_context import ItemExecutionContext
from imap_manager.logging_config import init_logging
from imap_manager.operations import enabled_operations
from imap_manager.orchestrator import MailboxOrchestrator

logger = logging.getLogger(__name__)

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@click.group()
@click.version_option(version=__version__, prog_name='imap-manager')
@click.option(
    '--config',
    type=click.Path(path_type=Path),
    default='config/config.yaml',
    help='Path to YAML configuration file (default: config/config.yaml)'
)
@click.option(
    '--env',
    type=click.Path(path_type=Path),
    default='.env',
    help='Path to .env secrets file (default: .env)'
)
@click.option(
    '--log-level',
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help='Override the configured log level'
)
@click.pass_context
def cli(ctx: click.Context, config: Path, env: Path, log_level: Optional[str]):
    """
    IMAP manager: run mailbox operations for a batch of input records.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = str(config)
    ctx.obj['env_path'] = str(env)
    ctx.obj['log_level'] = log_level.upper() if log_level else None


def _load_config(ctx: click.Context) -> ManagerConfig:
    """
    Load the configuration and initialize logging from its ``logging`` section.

    Raises:
        SystemExit: If the config file is missing or invalid
    """
    config_path = ctx.obj['config_path']
    env_path = ctx.obj['env_path']

    if not Path(config_path).exists():
        click.echo(f"Configuration error: Config file not found: {config_path}", err=True)
        sys.exit(1)

    try:
        config = ConfigLoader(config_path, env_path=env_path).load()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    overrides = dict(config.logging)
    if ctx.obj.get('log_level'):
        overrides['level'] = ctx.obj['log_level']
        handlers = dict(overrides.get('handlers') or {})
        handlers['console'] = {**(handlers.get('console') or {}), 'level': ctx.obj['log_level']}
        overrides['handlers'] = handlers
    init_logging(overrides=overrides)
    return config


def parse_param_options(params: Tuple[str, ...]) -> Dict[str, Any]:
    """
    Parse repeated ``--param key=value`` options.

    Values are taken as strings; expressions such as ``{{ $json.uid }}`` are
    resolved later against each record.
    """
    parsed: Dict[str, Any] = {}
    for param in params:
        key, sep, value = param.partition('=')
        if not sep or not key.strip():
            raise click.BadParameter(f"Expected key=value, got {param!r}", param_hint='--param')
        parsed[key.strip()] = value
    return parsed


def _read_items(source) -> List[Dict[str, Any]]:
    try:
        data = json.load(source)
    except json.JSONDecodeError as e:
        click.echo(f"Input error: invalid JSON: {e}", err=True)
        sys.exit(1)

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        click.echo("Input error: expected a JSON object or an array of objects", err=True)
        sys.exit(1)
    return data


@cli.command()
@click.option(
    '--input', 'input_file',
    type=click.File('r', encoding='utf-8'),
    default='-',
    help='JSON file with the input records (default: stdin)'
)
@click.option(
    '--param', 'params',
    multiple=True,
    help='Parameter override as key=value (repeatable), e.g. --param operation=move'
)
@click.pass_context
def run(ctx: click.Context, input_file, params: Tuple[str, ...]):
    """Run the configured operation for every input record."""
    config = _load_config(ctx)
    items = _read_items(input_file)

    parameters = dict(config.parameters)
    parameters.update(parse_param_options(params))

    context = ItemExecutionContext(items, parameters)
    orchestrator = MailboxOrchestrator(
        context,
        CredentialStore.from_config(config),
        config.features
    )

    try:
        result = orchestrator.run(items)
    except ImapManagerError as e:
        click.echo(f"Error: {e.__class__.__name__}: {e}", err=True)
        sys.exit(1)

    payload: Dict[str, Any] = {'main': result.main}
    if result.has_error_output:
        payload['error'] = result.error
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


@cli.command('check-config')
@click.pass_context
def check_config(ctx: click.Context):
    """Validate the configuration and print the resolved settings (no secrets)."""
    config = _load_config(ctx)
    store = CredentialStore.from_config(config)

    click.echo(f"IMAP:     {config.imap.user}@{config.imap.host}:{config.imap.port} "
               f"({'TLS' if config.imap.secure else 'STARTTLS if offered'})")
    click.echo(f"          password from ${config.imap.password_env}: {_credential_status(store, IMAP)}")
    if store.has(SMTP):
        click.echo(f"SMTP:     {config.smtp.user or '(no auth)'}@{config.smtp.host}:{config.smtp.port} "
                   f"({'TLS' if config.smtp.secure else 'STARTTLS if offered'})")
        click.echo(f"          from: {config.smtp.from_address or '(null sender)'}; "
                   f"password from ${config.smtp.password_env}: {_credential_status(store, SMTP)}")
    else:
        click.echo("SMTP:     not configured")

    features = config.features
    click.echo(f"Features: error_output={features.error_output} account_guard={features.account_guard} "
               f"list_mailboxes={features.list_mailboxes} redirect={features.redirect}")
    click.echo(f"Operations: {', '.join(enabled_operations(features))}")
    if features.redirect and not store.has(SMTP):
        click.echo("Warning: redirect is enabled but no SMTP credential is configured", err=True)
    click.echo("Configuration OK")


def _credential_status(store: CredentialStore, name: str) -> str:
    try:
        store.get(name)
    except ImapManagerError:
        return 'missing'
    return 'set'


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
