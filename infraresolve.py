#!/usr/bin/env python
import json
import logging
import sys

import click

import resolver.environment as environment_selector
import resolver.fileparser as fileparser
import resolver.interpreter as interpreter
import resolver.lookups as lookups
import resolver.ordering as ordering
from resolver.assembler import ResolvedGraph
from resolver.config_loader import load_settings
from resolver.exceptions import InfraResolveError


__version__ = "0.1"


def my_excepthook(exc_type, exc_value, exc_traceback):
    print(f"Unhandled error: {exc_type}, {exc_value}, {exc_traceback}")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(error: InfraResolveError, debug: bool) -> None:
    if debug:
        raise error
    click.echo(click.style(f"\nERROR: {error}\n", fg="red", bold=True), err=True)
    sys.exit(1)


def compile_graph(
    source: tuple,
    environment: str,
    region: str,
    state: str,
    config: str,
    strict_rules: bool,
) -> ResolvedGraph:
    """Read declarations and resolve them for one environment.

    Args:
        source: Declaration files or directories
        environment: Environment to resolve (falls back to the settings value)
        region: Region override
        state: Path to identifiers returned by the provisioning engine
        config: Path to a settings file
        strict_rules: Reject security rules setting both CIDR and peer group

    Returns:
        ResolvedGraph: Resolved records for the environment
    """
    settings = load_settings(config or None)
    environment = environment or settings["environment"]
    document = fileparser.read_document(source)
    region = (
        region
        or environment_selector.environment_setting(document, "region", environment)
        or settings["region"]
    )
    known_ids = fileparser.load_known_ids(state, environment) if state else None
    zones, images = lookups.build_lookups(settings, region)
    click.echo(
        click.style(
            f"\nResolving environment '{environment}' in region {region}..\n",
            fg="white",
            bold=True,
        )
    )
    return interpreter.resolve(
        document,
        environment,
        zones,
        images,
        region=region,
        known_ids=known_ids,
        strict_rules=strict_rules or settings["strict_rules"],
        default_tags=settings["default_tags"],
    )


def _print_summary(graph: ResolvedGraph) -> None:
    click.echo(click.style("\nResolution order:\n", fg="white", bold=True))
    for entity_type, count in graph.counts().items():
        click.echo(f"  {entity_type}: {count}")


def resolution_options(func):
    """Options shared by every command that runs a resolution."""
    options = [
        click.option("--debug", is_flag=True, default=False, help="Dump exception tracebacks"),
        click.option(
            "--source",
            multiple=True,
            default=["."],
            help="Declaration file or folder (.tfvars, .json, .yaml)",
        ),
        click.option(
            "--environment",
            default="",
            help="Environment to resolve (default from settings, else 'default')",
        ),
        click.option("--region", default="", help="Region to list availability zones in"),
        click.option(
            "--state",
            default="",
            type=click.Path(exists=True, dir_okay=False),
            help="JSON/YAML file of per-environment identifiers returned by the provisioning engine",
        ),
        click.option("--config", default="", help="Path to settings file (YAML)"),
        click.option(
            "--strict-rules",
            is_flag=True,
            default=False,
            help="Reject security rules that set both a CIDR and a peer group",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.version_option(version=__version__, prog_name="infraresolve")
@click.group()
def cli():
    """
    infraresolve resolves declared network and cluster entities into a
    fully referenced graph for provisioning

    For help with a specific command type:

    infraresolve [COMMAND] --help

    """
    pass


@cli.command()
@click.option("--debug", is_flag=True, default=False, help="Dump exception tracebacks")
@click.option(
    "--source",
    multiple=True,
    default=["."],
    help="Declaration file or folder (.tfvars, .json, .yaml)",
)
def environments(debug, source):
    """Lists environments declared in the source documents"""
    _configure_logging(debug)
    try:
        document = fileparser.read_document(source)
    except InfraResolveError as error:
        _fail(error, debug)
    for name in environment_selector.list_environments(document):
        click.echo(name)


@cli.command()
@resolution_options
def preview(debug, source, environment, region, state, config, strict_rules):
    """Shows the resolved graph without writing anything"""
    if not debug:
        sys.excepthook = my_excepthook
    _configure_logging(debug)
    try:
        graph = compile_graph(source, environment, region, state, config, strict_rules)
    except InfraResolveError as error:
        _fail(error, debug)
    click.echo(click.style("\nResolved graph:\n", fg="white", bold=True))
    click.echo(json.dumps(graph.to_dict(), indent=4, sort_keys=True))
    _print_summary(graph)


@cli.command()
@resolution_options
@click.option(
    "--outfile",
    default="resolved",
    help="Filename for resolved output (default resolved.json)",
)
def export(debug, source, environment, region, state, config, strict_rules, outfile):
    """Writes the resolved graph as JSON for the provisioning engine"""
    if not debug:
        sys.excepthook = my_excepthook
    _configure_logging(debug)
    try:
        graph = compile_graph(source, environment, region, state, config, strict_rules)
    except InfraResolveError as error:
        _fail(error, debug)
    if not outfile.endswith(".json"):
        outfile += ".json"
    click.echo(click.style(f"\nExporting resolved graph into file {outfile}", fg="yellow"))
    with open(outfile, "w") as f:
        json.dump(graph.to_dict(), f, indent=4, sort_keys=True)
    _print_summary(graph)
    click.echo("\nCompleted!")


@cli.command()
@click.option("--debug", is_flag=True, default=False, help="Dump exception tracebacks")
@click.option(
    "--source",
    multiple=True,
    default=[],
    help="Declaration file or folder; adds entity counts to the graph",
)
@click.option("--environment", default="default", help="Environment to count entities for")
@click.option(
    "--outfile",
    default="dependencies",
    help="Filename for output graph (default dependencies.dot)",
)
@click.option(
    "--format",
    default="",
    help="Render with Graphviz to this format (png/pdf/svg); DOT source only if empty",
)
def graph(debug, source, environment, outfile, format):
    """Draws the entity type dependency graph"""
    _configure_logging(debug)
    counts = None
    try:
        if source:
            document = fileparser.read_document(source)
            selection = environment_selector.select(document, environment)
            counts = {t: len(records) for t, records in selection.items()}
        dot = ordering.render_dependency_graph(counts=counts)
    except InfraResolveError as error:
        _fail(error, debug)
    if not outfile.endswith(".dot"):
        outfile += ".dot"
    dot.save(outfile)
    click.echo(f"\nDependency graph written to {outfile}")
    if format:
        rendered = dot.render(outfile, format=format)
        click.echo(f"Rendered diagram {rendered}")


if __name__ == "__main__":
    cli()
