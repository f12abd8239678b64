"""
costdelta CLI

Entry point: global logging flags plus the analyze and version commands.
"""

from __future__ import annotations

import logging
import sys

import typer

from costdelta.cli.analyze import analyze_cmd

app = typer.Typer(
    name="costdelta",
    help="Monthly cost impact of CloudFormation template changes",
    no_args_is_help=True,
    add_completion=False,
)

VERBOSE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def log_level(verbose: bool, quiet: bool) -> int:
    if verbose and quiet:
        raise typer.BadParameter("--verbose and --quiet cannot be combined")
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.WARNING


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log cache hits, retries and per-resource prices to stderr",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
):
    """
    costdelta - CloudFormation cost deltas

    Diffs two templates, prices every added, removed and modified
    resource with the AWS Price List API and checks the monthly delta
    against warning/error thresholds.

    Run 'costdelta COMMAND --help' for command-specific help.
    """
    # stdout is reserved for results; logs go to stderr
    logging.basicConfig(
        level=log_level(verbose, quiet),
        format=VERBOSE_FORMAT if verbose else "%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


@app.command()
def version():
    """Show version information."""
    from costdelta import __version__

    typer.echo(f"costdelta {__version__}")


app.command("analyze")(analyze_cmd)


if __name__ == "__main__":
    app()
