#!/usr/bin/env python3
"""
Chess Lobby Command Line Client

Drives the room lifecycle coordinator from a terminal.

Usage:
    chess-lobby endpoint show
    chess-lobby endpoint set 192.168.1.5:5000
    chess-lobby --email alice@example.com rooms list
    chess-lobby --email alice@example.com rooms create --minutes 5
    chess-lobby --email bob@example.com rooms join ab12cd
    chess-lobby --email alice@example.com rooms delete ab12cd --yes
    chess-lobby --email alice@example.com watch --interval 10
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import LobbySettings
from .coordinator import ActionOutcome, RoomLifecycleCoordinator
from .directory import RoomDirectoryClient
from .endpoint import EndpointResolver, JsonFileStore
from .realtime import RealtimeChannel
from .schemas import DEFAULT_TIME_CONTROL_MINUTES, ROOM_DELETED, Room

logger = logging.getLogger(__name__)

# Seconds to wait for the realtime handshake before acting without it
HANDSHAKE_TIMEOUT = 3.0


def build_resolver(settings: LobbySettings) -> EndpointResolver:
    """Create the endpoint resolver described by ``settings``."""
    return EndpointResolver(
        JsonFileStore(settings.settings_path),
        platform=settings.platform,
        override=settings.api_url_override,
    )


def build_coordinator(
    settings: LobbySettings,
    resolver: EndpointResolver,
    user_email: Optional[str],
) -> RoomLifecycleCoordinator:
    """Wire a coordinator with live REST and realtime clients."""
    directory = RoomDirectoryClient(
        resolver.resolve, timeout=settings.http_timeout
    )
    channel = RealtimeChannel(
        resolver.realtime_url(), socketio_path=settings.realtime_path
    )
    return RoomLifecycleCoordinator(directory, channel, user_email)


def format_room(room: Room, user_email: Optional[str] = None) -> str:
    """One-line summary of a room for terminal output."""
    marker = ""
    if user_email and room.is_host(user_email):
        marker = " (your room)"
    elif user_email and room.has_member(user_email):
        marker = " (joined)"
    members = ", ".join(room.members) or "-"
    return (
        f"{room.room_id}  {room.status.value:<8}  "
        f"{len(room.members)}/2  {room.time_control_minutes}min  "
        f"host={room.host_email}  members={members}{marker}"
    )


def print_rooms(coordinator: RoomLifecycleCoordinator) -> None:
    rooms = coordinator.room_list
    if not rooms:
        print("No rooms available")
        return
    for room in rooms:
        print(format_room(room, coordinator.user_email))


def report(outcome: ActionOutcome) -> int:
    """Print an action outcome and return the process exit code."""
    if outcome.ok:
        if outcome.navigate_to:
            print(f"Entered room {outcome.navigate_to}")
        else:
            print(f"{outcome.action.value} {outcome.room_id}: done")
        return 0
    kind = outcome.error_kind.value if outcome.error_kind else "Error"
    print(f"{kind}: {outcome.message}", file=sys.stderr)
    return 1


async def run_endpoint(args, settings: LobbySettings) -> int:
    resolver = build_resolver(settings)
    if args.endpoint_command == "set":
        if not resolver.persist(args.url):
            print(f"Invalid server address: {args.url!r}", file=sys.stderr)
            return 1
    print(resolver.resolve())
    return 0


async def list_rooms(coordinator: RoomLifecycleCoordinator) -> int:
    if not await coordinator.refresh():
        print("Unable to load the room list", file=sys.stderr)
        return 1
    print_rooms(coordinator)
    return 0


async def run_rooms(args, settings: LobbySettings) -> int:
    resolver = build_resolver(settings)
    coordinator = build_coordinator(settings, resolver, args.email)
    channel = coordinator.channel

    if args.rooms_command == "list":
        try:
            return await list_rooms(coordinator)
        finally:
            coordinator.directory.close()

    channel.start()
    try:
        await channel.wait_connected(HANDSHAKE_TIMEOUT)
        if args.rooms_command == "create":
            outcome = await coordinator.create_room(
                time_control_minutes=args.minutes
            )
        elif args.rooms_command == "join":
            outcome = await coordinator.join_room(args.room_id)
        else:
            coordinator.request_delete(args.room_id)
            if not args.yes:
                answer = await asyncio.to_thread(
                    input, f"Delete room {args.room_id}? [y/N] "
                )
                if answer.strip().lower() not in ("y", "yes"):
                    coordinator.cancel_delete()
                    print("Cancelled")
                    return 0
            outcome = await coordinator.confirm_delete()
        return report(outcome)
    finally:
        await channel.stop()
        coordinator.directory.close()


async def run_watch(args, settings: LobbySettings) -> int:
    resolver = build_resolver(settings)
    coordinator = build_coordinator(settings, resolver, args.email)
    channel = coordinator.channel

    def on_deleted(payload):
        print(
            f"Room {payload.get('roomId')} deleted by "
            f"{payload.get('deletedBy') or 'unknown'}"
        )

    subscription = channel.subscribe(ROOM_DELETED, on_deleted)
    await coordinator.mount()
    channel.start()
    try:
        while True:
            if await coordinator.refresh():
                print(f"--- {len(coordinator.rooms)} rooms ---")
                print_rooms(coordinator)
                await coordinator.follow_member_rooms()
            await asyncio.sleep(args.interval)
    finally:
        subscription.unsubscribe()
        await coordinator.unmount()
        await channel.stop()
        coordinator.directory.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chess-lobby", description="Chess room lobby client"
    )
    parser.add_argument(
        "--email", help="Email of the signed-in user (CHESS_LOBBY_EMAIL)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    endpoint = commands.add_parser("endpoint", help="Show or change server")
    endpoint_commands = endpoint.add_subparsers(
        dest="endpoint_command", required=True
    )
    endpoint_commands.add_parser("show", help="Print the active API URL")
    endpoint_set = endpoint_commands.add_parser("set", help="Store a new URL")
    endpoint_set.add_argument("url", help="Server address, e.g. host:5000")

    rooms = commands.add_parser("rooms", help="Room operations")
    rooms_commands = rooms.add_subparsers(dest="rooms_command", required=True)
    rooms_commands.add_parser("list", help="List rooms")
    create = rooms_commands.add_parser("create", help="Create a room")
    create.add_argument(
        "--minutes",
        type=int,
        default=DEFAULT_TIME_CONTROL_MINUTES,
        help="Game clock in minutes",
    )
    join = rooms_commands.add_parser("join", help="Join a room")
    join.add_argument("room_id")
    delete = rooms_commands.add_parser("delete", help="Delete your room")
    delete.add_argument("room_id")
    delete.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )

    watch = commands.add_parser("watch", help="Follow the lobby live")
    watch.add_argument(
        "--interval", type=float, default=15.0, help="Refresh period (s)"
    )
    return parser


async def run(args, settings: LobbySettings) -> int:
    if args.command == "endpoint":
        return await run_endpoint(args, settings)
    if args.command == "rooms":
        return await run_rooms(args, settings)
    return await run_watch(args, settings)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the lobby client."""
    args = build_parser().parse_args(argv)

    try:
        settings = LobbySettings.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting chess lobby client...")
    if args.email is None:
        args.email = settings.user_email

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("\nExiting...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
