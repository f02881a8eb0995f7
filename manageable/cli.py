import importlib
import json

import click


@click.group()
@click.option("--log-level", default=None, help="Log level (default: from MANAGEABLE_LOG_LEVEL or INFO).")
@click.option("--echo-sql", is_flag=True, default=False, help="Log SQL emitted by SQLAlchemy.")
def main(log_level: str | None, echo_sql: bool) -> None:
    """Manageable - inspect manager configuration."""
    from manageable.log import setup_logging
    from manageable.settings import get_settings

    setup_logging(log_level or get_settings().log_level, echo_sql=echo_sql)


@main.command()
@click.option("--as-json", is_flag=True, default=False, help="Print as JSON.")
def config(as_json: bool) -> None:
    """Show the effective configuration."""
    from manageable.registry import get_configuration

    values = get_configuration().as_dict()
    if as_json:
        click.echo(json.dumps(values, indent=2))
        return
    for key, value in values.items():
        click.echo(f"{key}: {value}")


def _load_manager(path: str):
    """Import ``package.module:ClassName``."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        msg = f"Expected MODULE:CLASS, got {path!r}"
        raise click.BadParameter(msg, param_hint="TARGET")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"Cannot import {module_name!r}: {exc}", param_hint="TARGET") from exc

    from manageable.managers import Manager

    manager_cls = getattr(module, attr, None)
    if not isinstance(manager_cls, type) or not issubclass(manager_cls, Manager):
        msg = f"{path!r} is not a Manager subclass"
        raise click.BadParameter(msg, param_hint="TARGET")
    return manager_cls


@main.command()
@click.argument("target")
def describe(target: str) -> None:
    """Show the entity, actions, adapters and defaults of a manager type (MODULE:CLASS)."""
    from manageable.managers import manager_actions

    manager_cls = _load_manager(target)
    entity = manager_cls.entity
    click.echo(f"manager: {manager_cls.__module__}.{manager_cls.__qualname__}")
    click.echo(f"entity: {entity.__name__ if entity is not None else None}")
    click.echo(f"actions: {', '.join(manager_actions(manager_cls)) or '-'}")
    for kind in ("authorization", "search", "pagination"):
        adapter = getattr(manager_cls, f"{kind}_adapter")
        click.echo(f"{kind}: {type(adapter).__name__ if adapter is not None else None}")
    click.echo(f"unique_search: {manager_cls.unique_search}")
    if not manager_cls.defaults:
        click.echo("defaults: -")
        return
    click.echo("defaults:")
    for key, scoped in manager_cls.defaults.items():
        for action, value in scoped.items():
            click.echo(f"  {key}[{action}]: {value!r}")
