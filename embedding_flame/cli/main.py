"""
Command-line interface for flame generation and comparison.

Vectors are read from JSON files holding either a list of numbers or an
object with an "embedding" list. Point clouds are read and written in their
[x, y, count] wire shape.
"""

import click
import sys
import json
from pathlib import Path
from dataclasses import replace
from typing import Any, List
import logging
import time

from .. import __version__
from ..api import FlameRenderer, OverlapAnalyzer
from ..core.flame_types import common_core, derive_params
from ..core.point_cloud import PointCloud
from ..io.config import ConfigManager, PRESETS
from ..exceptions import FlameError, InvalidInputError

logger = logging.getLogger(__name__)


def load_vector(path: str) -> List[float]:
    """Load an embedding vector from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = data.get('embedding')
    if not isinstance(data, list):
        raise InvalidInputError(f"{path} must contain a list of numbers or an 'embedding' list")
    return data


def load_point_cloud(path: str) -> PointCloud:
    """Load a point cloud from a JSON file."""
    return PointCloud.from_json(Path(path).read_text(encoding='utf-8'))


def write_json(data: Any, output: str) -> None:
    """Write JSON to a file, or to stdout when output is '-'."""
    text = json.dumps(data, indent=2)
    if output == '-':
        click.echo(text)
    else:
        Path(output).write_text(text, encoding='utf-8')


def fail(ctx: click.Context, error: Exception) -> None:
    """Report an error and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--preset', type=click.Choice(sorted(PRESETS)), help='Configuration preset to use')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, preset, verbose, quiet):
    """
    Flame Echo - embedding flame fractals and overlap comparison.

    Derive flame parameters from embedding vectors, render them to point
    clouds with the chaos game, and compare two point clouds for spatial
    overlap.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Flame Echo v{__version__}")
        click.echo(f"Python: {sys.version}")
        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['preset'] = preset
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('vector_file', type=click.Path(exists=True))
@click.pass_context
def params(ctx, vector_file):
    """
    Print the flame parameters derived from a vector.

    VECTOR_FILE: JSON file with the embedding vector
    """
    try:
        click.echo(json.dumps(derive_params(load_vector(vector_file)).to_dict(), indent=2))
    except FlameError as e:
        fail(ctx, e)


@main.command()
@click.argument('vector_file', type=click.Path(exists=True))
@click.argument('output', type=click.Path())
@click.option('--width', '-w', type=int, help='Raster width')
@click.option('--height', '-h', type=int, help='Raster height')
@click.option('--iterations', '-n', type=int, help='Chaos-game iterations')
@click.option('--seed', type=int, help='Random seed for reproducible renders')
@click.option('--multiplier', type=int, help='Resolution multiplier for high-resolution export')
@click.option('--workers', type=int, help='Number of worker processes')
@click.option('--image', type=click.Path(), help='Also save a PNG/JPEG preview')
@click.pass_context
def render(ctx, vector_file, output, width, height, iterations, seed, multiplier, workers, image):
    """
    Render a vector's flame to a point cloud.

    VECTOR_FILE: JSON file with the embedding vector
    OUTPUT: Point cloud JSON output path ('-' for stdout)
    """
    try:
        render_config, _ = ConfigManager().resolve(ctx.obj.get('config_file'), ctx.obj.get('preset'))

        overrides = {
            'width': width,
            'height': height,
            'iterations': iterations,
            'seed': seed,
            'resolution_multiplier': multiplier,
            'num_workers': workers,
        }
        render_config = replace(render_config,
                                **{k: v for k, v in overrides.items() if v is not None})

        renderer = FlameRenderer(render_config)
        flame_params = renderer.params_for(load_vector(vector_file))

        def progress_callback(progress):
            if ctx.obj.get('verbose'):
                click.echo(f"Progress: {progress:.1f}%", err=True)

        if not ctx.obj.get('quiet'):
            click.echo("Rendering flame...", err=True)
        start_time = time.time()

        if image:
            result = renderer.export(flame_params, Path(image), progress_callback)
        else:
            result = renderer.render(flame_params, progress_callback)

        write_json(result.point_cloud.to_wire(), output)

        if not ctx.obj.get('quiet'):
            click.echo(f"Render complete: {len(result.point_cloud)} points, "
                       f"{time.time() - start_time:.2f}s", err=True)
    except FlameError as e:
        fail(ctx, e)


@main.command()
@click.argument('cloud_a', type=click.Path(exists=True))
@click.argument('cloud_b', type=click.Path(exists=True))
@click.option('--output', '-o', type=click.Path(), default='-', help='Payload JSON output path')
@click.option('--max-distance', type=int, help='Search window half-size in pixels')
@click.option('--sigma', type=float, help='Gaussian falloff sigma in pixels')
@click.option('--workers', type=int, help='Number of worker processes')
@click.option('--image', type=click.Path(), help='Also save an overlap heat map')
@click.option('--size', type=int, default=800, help='Heat map width and height')
@click.pass_context
def compare(ctx, cloud_a, cloud_b, output, max_distance, sigma, workers, image, size):
    """
    Compare two point clouds for spatial overlap.

    The result is anchored at CLOUD_A's pixels; swapping the arguments
    generally changes it.
    """
    try:
        _, overlap_config = ConfigManager().resolve(ctx.obj.get('config_file'), ctx.obj.get('preset'))

        overrides = {'max_distance': max_distance, 'sigma': sigma, 'num_workers': workers}
        overlap_config = replace(overlap_config,
                                 **{k: v for k, v in overrides.items() if v is not None})

        analyzer = OverlapAnalyzer(overlap_config)
        payload = analyzer.compare(load_point_cloud(cloud_a), load_point_cloud(cloud_b))
        write_json(payload, output)

        if image:
            from ..rendering.image_output import ImageExporter, RenderMetadata
            metadata = RenderMetadata(kind='overlap', resolution=(size, size),
                                      point_count=payload['metadata']['count'])
            ImageExporter().save_image(analyzer.render_image(payload, size, size),
                                       Path(image), metadata)

        if not ctx.obj.get('quiet'):
            meta = payload['metadata']
            click.echo(f"Overlap: {meta['count']} pixels, "
                       f"average distance {meta['averageDistance']:.2f}px", err=True)
    except FlameError as e:
        fail(ctx, e)


@main.command('common-core')
@click.argument('vector_a', type=click.Path(exists=True))
@click.argument('vector_b', type=click.Path(exists=True))
@click.pass_context
def common_core_command(ctx, vector_a, vector_b):
    """
    Print the shared core of two vectors.

    Components with matching signs keep the smaller magnitude; others are 0.
    """
    try:
        click.echo(json.dumps(common_core(load_vector(vector_a), load_vector(vector_b))))
    except FlameError as e:
        fail(ctx, e)


@main.command('init-config')
@click.argument('output', type=click.Path(), default='flame_config.yaml')
@click.option('--format', 'fmt', type=click.Choice(['yaml', 'json']),
              help='Output format (auto-detect if not specified)')
@click.pass_context
def init_config(ctx, output, fmt):
    """
    Write a default configuration file.

    OUTPUT: Configuration file path (default: flame_config.yaml)
    """
    output_path = Path(output)

    # Auto-detect format if not specified
    if not fmt:
        if output_path.suffix.lower() in ['.yaml', '.yml']:
            fmt = 'yaml'
        elif output_path.suffix.lower() == '.json':
            fmt = 'json'
        else:
            fmt = 'yaml'
            if not output_path.suffix:
                output_path = output_path.with_suffix('.yaml')

    ConfigManager().save_config(output_path, fmt=fmt)
    click.echo(f"Configuration written: {output_path}")
    click.echo(f"Format: {fmt.upper()}")


if __name__ == '__main__':
    main()
