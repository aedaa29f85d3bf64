"""Command-line interface for castloop.

This module provides the `castloop` command. `castloop play` finds a
device, serves a local directory and keeps playing random tracks from it
until the device is paused; `castloop discover` only reports the device
that would be used.
"""

import argparse
import asyncio
import logging
import random
import sys
from typing import NoReturn

import castloop
from castloop.catalog import DEFAULT_SUFFIXES
from castloop.server import DEFAULT_SERVE_PORT
from castloop.types import DEFAULT_PORT


async def session_config(args: argparse.Namespace) -> castloop.SessionConfig:
    """Work out which device to talk to.

    Uses --host when given, otherwise runs discovery.

    :param args: Parsed command-line arguments.
    :returns: SessionConfig for the device.
    """
    if args.host:
        return castloop.SessionConfig(
            host=args.host,
            port=args.port,
            connect_timeout=args.connect_timeout,
        )
    descriptor = await castloop.DeviceLocator().locate(args.timeout)
    return castloop.SessionConfig.from_descriptor(
        descriptor, connect_timeout=args.connect_timeout
    )


async def play(args: argparse.Namespace) -> None:
    """Run the playback loop until the device is paused.

    :param args: Parsed command-line arguments.
    """
    config = await session_config(args)
    rng = random.Random(args.seed)

    if args.url:
        controller = castloop.PlaybackController(
            config,
            direct_url=args.url,
            rng=rng,
            advance_delay=args.advance_delay,
        )
        await controller.run()
        return

    # The file server lives for the whole run, independent of sessions
    origin = castloop.MediaOrigin(root=args.dir, port=args.serve_port)
    await origin.start()
    try:
        catalog = castloop.MediaCatalog(args.dir, args.ext or DEFAULT_SUFFIXES).scan()
        print(f"Found {len(catalog)} playable file(s) in {args.dir}")
        controller = castloop.PlaybackController(
            config,
            catalog=catalog,
            origin=origin,
            rng=rng,
            advance_delay=args.advance_delay,
        )
        await controller.run()
    finally:
        await origin.stop()


async def discover(args: argparse.Namespace) -> None:
    """Run discovery and print the device that was chosen.

    :param args: Parsed command-line arguments.
    """
    print(f"Starting discovery... (waiting up to {args.timeout}s)")
    device = await castloop.DeviceLocator().locate(args.timeout)

    headers = ["Name", "ID", "Address", "Model"]
    row = [
        device.display_name,
        device.identity,
        f"{device.address}:{device.port}",
        device.model or "N/A",
    ]
    widths = [max(len(h), len(c)) + 2 for h, c in zip(headers, row)]
    fmt = "".join(f"{{:<{w}}}" for w in widths)

    print("-" * sum(widths))
    print(fmt.format(*headers))
    print("-" * sum(widths))
    print(fmt.format(*row))
    print("-" * sum(widths))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    :returns: Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        description="Play local media on a Cast device in an endless shuffle."
    )
    parser.add_argument("--host", help="device hostname or IP (skips discovery)")
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"device control port (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--dir", default=".", help="directory to play from (default: .)"
    )
    parser.add_argument("--url", help="play this URL instead of a directory")
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=5.0,
        help="discovery timeout in seconds (default: 5.0)",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=30.0,
        help="connect deadline in seconds (default: 30.0)",
    )
    parser.add_argument(
        "--serve-port",
        type=int,
        default=DEFAULT_SERVE_PORT,
        help=f"port of the embedded file server (default: {DEFAULT_SERVE_PORT})",
    )
    parser.add_argument(
        "--ext",
        action="append",
        help="playable file suffix, may be repeated (default: .mp3)",
    )
    parser.add_argument(
        "--advance-delay",
        type=float,
        default=2.0,
        help="pause in seconds between tracks (default: 2.0)",
    )
    parser.add_argument("--seed", type=int, help="seed for track selection")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (e.g., -v for INFO, -vv for DEBUG)",
    )
    parser.set_defaults(command=play)

    subparsers = parser.add_subparsers(title="commands")
    subparsers.add_parser(
        "play", help="discover a device and play (default)"
    ).set_defaults(command=play)
    subparsers.add_parser(
        "discover", help="discover a device and print it"
    ).set_defaults(command=discover)
    return parser


def main() -> NoReturn:
    """Entry point for the castloop command."""
    args = build_parser().parse_args()

    # Configure logging
    log_level = logging.WARNING
    if args.verbose == 1:
        log_level = logging.INFO
    elif args.verbose >= 2:  # noqa: PLR2004
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        asyncio.run(args.command(args))
    except KeyboardInterrupt:
        print("\nCancelled by user.")
        sys.exit(130)
    except castloop.CastLoopError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        sys.exit(1)

    print("Done")
    sys.exit(0)


if __name__ == "__main__":
    main()
