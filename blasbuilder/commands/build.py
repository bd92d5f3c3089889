import click
import sys
from .. import builder
from ..cli_logger import logger
from ..decorators import handle_exceptions
from ..environment import snapshot
from ..utils import FORMATS, CommandRunner, emit


def _split_features(values):
    features = []
    for value in values:
        features.extend(f for f in value.replace(",", " ").split() if f)
    return features


@click.command()
@click.option("--target", "triple", default=None, help="Target triple, e.g. x86_64-unknown-linux-gnu.")
@click.option("--os", "os_name", default=None, help="Target operating system (linux, macos, windows, ios, android).")
@click.option("--env", "abi", default=None, help="Target ABI/environment (gnu, msvc, ...).")
@click.option("--pointer-width", type=int, default=None, help="Target pointer width in bits.")
@click.option("--feature", "-F", "features", multiple=True,
              help="Enable a feature (static, system, cblas, lapacke, cache). Repeatable or comma-separated.")
@click.option("--openblas-target", default=None, help="Pass TARGET=<name> to the OpenBLAS build unchanged.")
@click.option("--jobs", "-j", type=int, default=None, help="Parallel jobs for make.")
@click.option("--source-dir", type=click.Path(file_okay=False), default=None, help="Vendored OpenBLAS source.")
@click.option("--cache-dir", type=click.Path(file_okay=False), default=None, help="Where cached source trees live.")
@click.option("--out-dir", type=click.Path(file_okay=False), default=None, help="Private output directory of this build.")
@click.option("--format", "fmt", type=click.Choice(FORMATS), default="cargo", show_default=True,
              help="How link directives are printed.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
@handle_exceptions
def build(ctx, triple, os_name, abi, pointer_width, features, openblas_target, jobs, source_dir, cache_dir, out_dir, fmt, verbose):
    """Resolve OpenBLAS and print the link directives for the consuming build."""
    if fmt == "json":
        # stdout carries only the JSON document
        logger.console = sys.stderr

    try:
        options = {
            "triple": triple,
            "os": os_name,
            "env": abi,
            "pointer_width": pointer_width,
            "target": openblas_target,
            "num_jobs": jobs,
            "source_dir": source_dir,
            "cache_dir": cache_dir,
            "out_dir": out_dir,
        }
        options = {key: value for key, value in options.items() if value is not None}
        environment = snapshot(
            project_dir=(ctx.obj or {}).get("path", "."),
            options=options,
            cli_features=_split_features(features),
        )
        if verbose:
            logger.info(f"Build environment: {environment}")

        directive = builder.resolve(environment, CommandRunner())
        emit(directive, fmt)
        logger.success(f"OpenBLAS resolved ({directive.link_kind.name.lower()} link).")
    finally:
        logger.console = None
