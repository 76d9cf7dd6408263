"""
edstab Command Line Interface

Usage:
    edstab <command> [options]

Commands:
    run         Stabilize a video and crop around the tracked object
    config      Write a default configuration file

Examples:
    edstab run input.mp4 -r object.jpg -out video=filename=out.mp4
    edstab run input.mp4 -c edstab.json -out window --crop 1280x720
    edstab config edstab.json
"""

import argparse
import logging
import signal
import sys

from edstab import __version__


def parse_size(value: str) -> tuple[int, int]:
    """Parse a WIDTHxHEIGHT string."""
    try:
        w, h = value.lower().split('x')
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got '{value}'")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='edstab',
        description='ED-RANSAC video stabilization',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    
    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'edstab {__version__}',
    )
    
    subparsers = parser.add_subparsers(dest='command', help='Command to run')
    
    # Run command
    run_parser = subparsers.add_parser(
        'run',
        help='Stabilize a video and crop around the tracked object',
    )
    run_parser.add_argument('input', help='Input video file or capture pipeline')
    run_parser.add_argument(
        '-r', '--reference',
        help='Reference image of the object to keep centered',
    )
    run_parser.add_argument(
        '-c', '--config',
        help='JSON configuration file',
    )
    run_parser.add_argument(
        '-out', '--output',
        action='append',
        dest='outputs',
        metavar='SPEC',
        help='Output specification (can be used multiple times)',
    )
    run_parser.add_argument(
        '--crop',
        type=parse_size,
        metavar='WxH',
        help='Output crop size (default: from config, 1920x1080)',
    )
    run_parser.add_argument(
        '--no-stabilize',
        action='store_true',
        help='Pass frames through without stabilization',
    )
    run_parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Only log warnings and errors',
    )
    run_parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log debug output',
    )
    
    # Config command
    config_parser = subparsers.add_parser(
        'config',
        help='Write a default configuration file',
    )
    config_parser.add_argument(
        'path',
        nargs='?',
        default='edstab.json',
        help='Output path (default: edstab.json)',
    )
    
    args = parser.parse_args(argv)
    
    if args.command is None:
        parser.print_help()
        return 0
    
    if args.command == 'run':
        return run_stabilize(args)
    elif args.command == 'config':
        return run_config(args)
    else:
        parser.print_help()
        return 1


def setup_logging(quiet: bool = False, verbose: bool = False) -> None:
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def run_stabilize(args):
    """Run the stabilization pipeline."""
    import cv2
    
    from edstab.core.config import Config, apply_env_overrides, load_config
    from edstab.core.errors import ConfigError
    from edstab.core.video import VideoReader
    from edstab.outputs import SinkManager
    from edstab.pipeline import build_pipeline
    
    setup_logging(args.quiet, args.verbose)
    
    try:
        config = load_config(args.config) if args.config else Config()
        config = apply_env_overrides(config)
    except (FileNotFoundError, ConfigError) as e:
        print(f"Error: {e}")
        return 1
    
    if args.crop:
        config.output.crop_width, config.output.crop_height = args.crop
    
    reference = None
    if args.reference:
        reference = cv2.imread(args.reference, cv2.IMREAD_COLOR)
        if reference is None:
            print(f"Error: Could not load reference image: {args.reference}")
            return 1
    
    sinks = SinkManager()
    try:
        for spec in args.outputs or ['window']:
            sinks.add_output(spec)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    
    print(f"Video source  : {args.input}")
    print(f"Reference img : {args.reference or '(none, frame center)'}")
    
    try:
        with VideoReader(args.input) as reader:
            pipeline = build_pipeline(
                reader,
                config,
                reference_image=reference,
                sinks=[sinks],
                stabilize=not args.no_stabilize,
            )
            # Finish the current frame on Ctrl-C / SIGTERM
            signal.signal(signal.SIGINT, lambda *_: pipeline.stop())
            signal.signal(signal.SIGTERM, lambda *_: pipeline.stop())
            stats = pipeline.run()
    except (RuntimeError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    
    print(f"\nDone! {stats.frames_out} frames written, "
          f"{stats.detections} detections, "
          f"{stats.identity_fallbacks} unstabilized, "
          f"{stats.skipped_invalid} skipped")
    return 0


def run_config(args):
    """Write a default configuration file."""
    from edstab.core.config import Config
    
    Config().save(args.path)
    print(f"Created configuration: {args.path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
