"""Command line checks for metric records.

    metricfields check myapp.metrics:Stats

imports the target, registers it into a fresh registry and prints the
resolved collector specs as a JSON envelope::

    {"success": true, "data": {"record": "Stats", "collectors": [...]}}
"""

import importlib
import json
import logging
from typing import Any, Dict, NoReturn, Optional

import click
from prometheus_client import CollectorRegistry

from metricfields.config import LOG_LEVELS, RegistrationConfig
from metricfields.errors import MetricFieldsError
from metricfields.registration import register_metrics

logger = logging.getLogger(__name__)


def _emit(success: bool, data: Dict[str, Any]) -> None:
    click.echo(json.dumps({"success": success, "data": data}, indent=2))


def _emit_error(message: str, error_type: str, **details: Any) -> NoReturn:
    _emit(False, {"error": message, "error_type": error_type, **details})
    raise SystemExit(1)


def load_target(target: str) -> Any:
    """Resolve ``module:attribute`` to a record instance.

    Classes are instantiated without arguments; anything else is
    returned as-is.

    Raises:
        click.BadParameter: If the target cannot be imported or resolved
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise click.BadParameter(f"expected MODULE:ATTRIBUTE, got {target!r}", param_hint="TARGET")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"cannot import {module_name!r}: {exc}", param_hint="TARGET") from exc

    obj: Any = module
    for part in attribute.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise click.BadParameter(f"{module_name!r} has no attribute {attribute!r}", param_hint="TARGET") from exc

    if isinstance(obj, type):
        try:
            obj = obj()
        except TypeError as exc:
            raise click.BadParameter(
                f"cannot instantiate {attribute!r} without arguments: {exc}", param_hint="TARGET"
            ) from exc
    return obj


@click.group()
@click.version_option(package_name="metricfields")
def cli() -> None:
    """Inspect declarative metric records."""


@cli.command("check")
@click.argument("target")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="TOML file with a [metrics] table.",
)
@click.option("--namespace", help="Prefix for exposed metric names.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Enable logging at this level.",
)
def check_cmd(
    target: str,
    config_file: Optional[str],
    namespace: Optional[str],
    log_level: Optional[str],
) -> None:
    """Register TARGET (MODULE:ATTRIBUTE) into a scratch registry and report."""
    config = RegistrationConfig.from_env(config_file)
    if namespace is not None:
        config.namespace = namespace
    if log_level is not None:
        config.log_level = log_level.upper()
        config.setup_logging()

    record = load_target(target)
    registry = CollectorRegistry()
    try:
        registered = register_metrics(record, registry, config=config)
    except MetricFieldsError as exc:
        logger.debug(f"Registration of {target} failed: {exc}")
        _emit_error(str(exc), type(exc).__name__, field=exc.field_name)

    _emit(
        True,
        {
            "record": type(record).__name__,
            "namespace": config.namespace,
            "collectors": [
                {"field": item.field_name, **item.spec.to_dict()} for item in registered
            ],
        },
    )


def main() -> None:
    cli()
