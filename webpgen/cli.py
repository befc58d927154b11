"""
Command Line Interface for derived image generation.
"""

import argparse
import json
import logging
import os
import time
from typing import List, Optional

from .config import EngineConfig, str2bool
from .engine import BatchEngine, build_engine
from .exceptions import ConfigError, WebpgenError
from .reporter import Reporter
from .scheduler import InlineScheduler
from .size_registry import parse_sizes


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('sh').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logging.getLogger('webpgen')


def get_config(args: argparse.Namespace) -> EngineConfig:
    """Get configuration from environment and CLI overrides."""
    config = EngineConfig.from_env()

    if getattr(args, 'library', None):
        config.library_root = args.library
    if getattr(args, 'state_file', None):
        config.state_file = args.state_file
    if getattr(args, 'sizes', None):
        config.sizes = parse_sizes(args.sizes)
        config.sizes_pinned = True
    if getattr(args, 'sizes_file', None):
        config.sizes_file = args.sizes_file
    if getattr(args, 'quality', None) is not None:
        config.quality = args.quality
    if getattr(args, 'processing_enabled', None) is not None:
        config.processing_enabled = str2bool(args.processing_enabled, default=True)
    if getattr(args, 'delay', None) is not None:
        config.continuation_delay = args.delay

    return config


def get_engine(
    args: argparse.Namespace,
    logger: logging.Logger,
    scheduler_factory=None
) -> Optional[BatchEngine]:
    """Validate configuration and build the engine, or log why it cannot be built."""
    try:
        config = get_config(args)
    except (ConfigError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return None

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return None

    return build_engine(config, logger=logger, scheduler_factory=scheduler_factory)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add library configuration arguments to a parser."""
    group = parser.add_argument_group('Library')
    group.add_argument('-l', '--library', metavar='PATH',
                       help='Library root (overrides WEBPGEN_LIBRARY_ROOT)')
    group.add_argument('--state-file', metavar='PATH',
                       help='Batch state file (default: <library>/.webpgen-state.json)')
    group.add_argument('--sizes', metavar='SPEC',
                       help='Registered sizes, e.g. thumbnail:150x150:crop,large:1024x1024')
    group.add_argument('--sizes-file', metavar='PATH',
                       help='Size file re-read on invalidation (default: <library>/.webpgen-sizes)')
    group.add_argument('-q', '--quality', type=int, help='WebP quality (default: 82)')
    group.add_argument('--processing-enabled', metavar='BOOL',
                       help='Enable or disable batch processing (default: true)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def cmd_index(args: argparse.Namespace) -> int:
    """Register originals found in the library."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    try:
        added = engine.deps.scanner.store.index_directory()
    except WebpgenError as e:
        logger.error(str(e))
        return 1

    for asset in added:
        logger.debug(f"  [{asset.asset_id}] {asset.file}")
    print(f"Indexed {len(added)} new assets")
    return 0


def cmd_gaps(args: argparse.Namespace) -> int:
    """Show the gaps of one or more assets."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    scanner = engine.deps.scanner
    ids = args.ids or scanner.list_asset_ids()
    reporter = Reporter()
    for asset_id in ids:
        gaps = scanner.get_gaps(asset_id)
        if args.json:
            _print_json({'id': asset_id, **gaps.to_dict()})
        elif gaps.needs_work or args.ids:
            reporter.report_gaps(asset_id, gaps)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Print batch status."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    try:
        status = engine.status()
    except WebpgenError as e:
        logger.error(str(e))
        return 1

    if args.json:
        _print_json(status)
    else:
        Reporter().report_status(status)
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    """Start or resume the batch pass."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger, scheduler_factory=InlineScheduler)
    if engine is None:
        return 1

    try:
        result = engine.start()
    except WebpgenError as e:
        logger.error(str(e))
        return 1
    finally:
        engine.shutdown()

    print(result.message)
    if result.success:
        print("Chunks now run from 'webpgen run', 'webpgen serve' or a scheduled "
              "'webpgen run-chunk'.")
    return 0 if result.success else 1


def cmd_pause(args: argparse.Namespace) -> int:
    """Pause the batch pass."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    try:
        state = engine.pause()
    except WebpgenError as e:
        logger.error(str(e))
        return 1

    print(f"Status: {state.status}")
    return 0


def cmd_run_chunk(args: argparse.Namespace) -> int:
    """Run one chunk now."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger, scheduler_factory=InlineScheduler)
    if engine is None:
        return 1

    try:
        payload = engine.run_chunk_now()
    except WebpgenError as e:
        logger.error(str(e))
        return 1
    finally:
        engine.shutdown()

    if args.json:
        _print_json(payload)
    else:
        Reporter().report_chunk(payload['chunk_result'])
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the pass and keep running chunks until it finishes."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger, scheduler_factory=InlineScheduler)
    if engine is None:
        return 1

    try:
        result = engine.start()
        if not result.success:
            logger.error(result.message)
            return 1

        start_time = time.time()
        while True:
            delay = engine.scheduler.take()
            if delay is None:
                break
            time.sleep(delay)
            engine.run_chunk()

        state = engine.get_state()
        stats = engine.store.load_stats()
        print()
        print(f"Status: {state.status}")
        print(f"Visited: {state.processed}/{state.total}")
        print(f"MB saved (total): {stats.mb_saved:.2f}")
        print(f"Time: {time.time() - start_time:.1f}s")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user, pausing batch")
        engine.pause()
        return 130
    except WebpgenError as e:
        logger.error(str(e))
        return 1
    finally:
        engine.shutdown()


def cmd_ingest(args: argparse.Namespace) -> int:
    """Register new originals and create their sizes and WebP files right away."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    if not engine.deps.current_gate().is_open:
        logger.error("Not ready or processing is disabled.")
        return 1

    store = engine.deps.scanner.store
    processor = engine.deps.processor
    failures = 0
    for path in args.paths:
        if not os.path.isfile(path):
            logger.error(f"File not found: {path}")
            failures += 1
            continue
        try:
            asset = store.add_asset(os.path.abspath(path))
        except WebpgenError as e:
            logger.error(str(e))
            failures += 1
            continue
        regenerated = store.regenerate_variants(asset.asset_id)
        count = processor.generate_derived_for_asset(asset.asset_id)
        print(
            f"[{asset.asset_id}] {asset.file}: "
            f"{'sizes generated, ' if regenerated else ''}{count} WebP files"
        )
    return 0 if failures == 0 else 1


def cmd_invalidate_sizes(args: argparse.Namespace) -> int:
    """Reload the registered sizes from their source and list them."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    try:
        names = engine.invalidate_sizes()
    except WebpgenError as e:
        logger.error(str(e))
        return 1

    print(f"Registered sizes: {', '.join(names)}")
    print("A running 'webpgen serve' keeps its own copy; "
          "POST /invalidate-sizes to reload it there.")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    """Forget the batch state and the cumulative stats."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    if not args.yes:
        logger.error("Reset clears progress and stats; pass --yes to confirm.")
        return 1

    engine.store.reset()
    print("Batch state and stats reset")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP control endpoints."""
    logger = setup_logging(args.verbose)
    engine = get_engine(args, logger)
    if engine is None:
        return 1

    from .server import create_app

    if engine.resume():
        logger.info("Resuming batch left running by a previous process")
    app = create_app(engine, key=get_config(args).key)
    logger.info(f"Serving on http://{args.host}:{args.port}")
    try:
        app.run(host=args.host, port=args.port, quiet=not args.verbose)
    finally:
        engine.shutdown()
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='webpgen',
        description='Incremental resolution and WebP generation for an image library',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Typical workflow:
  1. Index:  webpgen index --library /srv/uploads
  2. Status: webpgen status --library /srv/uploads
  3. Run:    webpgen run --library /srv/uploads

`start` only marks the pass as running. Chunks are driven by `run` (foreground),
`serve` (which resumes a running pass) or `run-chunk` from cron, one at a time.
After editing <library>/.webpgen-sizes, reload the sizes of a live server
with POST /invalidate-sizes.

The library can also be set with WEBPGEN_LIBRARY_ROOT.
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    index_parser = subparsers.add_parser('index', help='Register originals found in the library')
    add_common_arguments(index_parser)

    gaps_parser = subparsers.add_parser('gaps', help='Show missing sizes and WebP files')
    gaps_parser.add_argument('ids', nargs='*', type=int, help='Asset ids (default: all needing work)')
    gaps_parser.add_argument('--json', action='store_true', help='Print JSON')
    add_common_arguments(gaps_parser)

    status_parser = subparsers.add_parser('status', help='Show batch status')
    status_parser.add_argument('--json', action='store_true', help='Print JSON')
    add_common_arguments(status_parser)

    start_parser = subparsers.add_parser('start', help='Start or resume the batch')
    add_common_arguments(start_parser)

    pause_parser = subparsers.add_parser('pause', help='Pause the batch')
    add_common_arguments(pause_parser)

    chunk_parser = subparsers.add_parser('run-chunk', help='Run one chunk now')
    chunk_parser.add_argument('--json', action='store_true', help='Print JSON')
    add_common_arguments(chunk_parser)

    run_parser = subparsers.add_parser('run', help='Run the batch in the foreground until done')
    run_parser.add_argument('-c', '--delay', type=float,
                            help='Seconds between chunks (default: 5)')
    add_common_arguments(run_parser)

    ingest_parser = subparsers.add_parser('ingest', help='Register files and process them now')
    ingest_parser.add_argument('paths', nargs='+', help='Original image files inside the library')
    add_common_arguments(ingest_parser)

    sizes_parser = subparsers.add_parser('invalidate-sizes', help='Reload the registered sizes')
    add_common_arguments(sizes_parser)

    reset_parser = subparsers.add_parser('reset', help='Clear batch state and stats')
    reset_parser.add_argument('-y', '--yes', action='store_true', help='Confirm the reset')
    add_common_arguments(reset_parser)

    serve_parser = subparsers.add_parser('serve', help='Serve HTTP control endpoints')
    serve_parser.add_argument('--host', default='127.0.0.1', help='Bind address')
    serve_parser.add_argument('-p', '--port', type=int, default=8085, help='Port (default: 8085)')
    serve_parser.add_argument('-c', '--delay', type=float,
                              help='Seconds between chunks (default: 5)')
    add_common_arguments(serve_parser)

    return parser


COMMANDS = {
    'index': cmd_index,
    'gaps': cmd_gaps,
    'status': cmd_status,
    'start': cmd_start,
    'pause': cmd_pause,
    'run-chunk': cmd_run_chunk,
    'run': cmd_run,
    'ingest': cmd_ingest,
    'invalidate-sizes': cmd_invalidate_sizes,
    'reset': cmd_reset,
    'serve': cmd_serve,
}


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    return COMMANDS[parsed_args.command](parsed_args)
