#!/usr/bin/env python3
"""
Command-line entry point for the DistCrawl crawler.

Commands:
  crawl     Crawl from the configured (and extra) seeds until idle, print/save stored pages
  config    Show the effective configuration

Common options:
  --config PATH       Path to a YAML/JSON config (default: configs/default.yaml)
  --max-depth INT     Override max_depth from the config
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only if omitted)
  --log-format FORMAT Log format (e.g. "%(asctime)s %(levelname)s %(message)s")

crawl options:
  --seed URL          Extra seed URL (repeatable)
  --idle-timeout SEC  Stop after this many seconds without crawl activity
  --json PATH         Save the JSON page report to a file
  --pretty            Indent JSON output (2 spaces)

Also:
  --version, -v       Show the DistCrawl version

Example:
  distcrawl --config configs/default.yaml crawl --seed https://example.com/ --json pages.json
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Sequence

import click

from distcrawl import __version__
from distcrawl.config import CrawlerConfig, load_config
from distcrawl.crawler.models import PageMetadata
from distcrawl.logger import init_logging
from distcrawl.report.json_report import page_records, render_json
from distcrawl.service import CrawlerService

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


async def run_crawl(cfg: CrawlerConfig, seeds: Sequence[str], idle_timeout: float) -> List[PageMetadata]:
    """Crawl until idle and return metadata of every stored page."""
    async with CrawlerService(cfg) as service:
        if seeds:
            await service.add_seed_urls(seeds)
        await service.run_until_idle(idle_timeout=idle_timeout)
        total = await service.page_count()
        return await service.list_pages(limit=total, offset=0)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='DistCrawl, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to the YAML/JSON configuration file.'
)
@click.option(
    '--max-depth', 'max_depth',
    type=click.IntRange(min=0),
    default=None,
    help='Override max_depth from the config'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file path (stdout if omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(name)s %(message)s',
    show_default=True,
    help='Log record format string'
)
@click.pass_context
def cli(ctx, config_path, max_depth, log_level, log_file, log_format):
    """DistCrawl command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    if max_depth is not None:
        cfg = cfg.model_copy(update={'max_depth': max_depth})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--seed', '-s', 'seeds',
    multiple=True,
    help='Extra seed URL (repeatable)'
)
@click.option(
    '--idle-timeout', 'idle_timeout',
    type=click.FloatRange(min=0, min_open=True),
    default=5.0,
    show_default=True,
    help='Stop after this many seconds without activity'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the JSON page report to a file'
)
@click.option(
    '--pretty', is_flag=True,
    help='Indent JSON output (2 spaces)'
)
@click.pass_context
def crawl(ctx, seeds, idle_timeout, json_output, pretty):
    """Crawl until idle and report the stored pages."""
    cfg = ctx.obj['config']
    if not cfg.seed_urls and not seeds:
        print_error('No seed URLs: set seed_urls in the config or pass --seed')
    click.echo(f'Starting crawl with {len(cfg.seed_urls) + len(seeds)} seed(s)', err=True)
    try:
        pages = asyncio.run(run_crawl(cfg, list(seeds), idle_timeout))
    except ValueError as e:
        print_error(f'Invalid seed: {e}')
    except Exception as e:
        print_error(f'Crawl failed: {e}')

    if not json_output:
        indent = 2 if pretty else None
        click.echo(json.dumps(page_records(pages), ensure_ascii=False, indent=indent))
        return

    try:
        saved = render_json(pages, json_output, pretty=pretty)
        click.echo(f'JSON report: {saved}')
    except OSError as e:
        print_error(f'Failed to save JSON: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the current configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
