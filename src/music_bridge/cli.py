from __future__ import annotations

import argparse
from pathlib import Path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="music-bridge: control music streaming services from the desktop"
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml", default=None)
    parser.add_argument("--log-level", default="INFO", help="Python log level (INFO, DEBUG, ...)")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run the bridge daemon")
    subparsers.add_parser("doctor", help="Check runtime dependencies and config")
    subparsers.add_parser("players", help="List players and which one is active")

    ctl = subparsers.add_parser("ctl", help="Control running daemon over IPC")
    ctl.add_argument(
        "action",
        choices=[
            "status",
            "play",
            "pause",
            "play_pause",
            "next",
            "previous",
            "add_to_favorites",
        ],
    )

    for name, help_text in (
        ("open", "Play a link on the player that supports it"),
        ("supports", "Check whether any enabled player supports a link"),
        ("resolve", "Print track metadata for a link"),
        ("auth-callback", "Forward an OAuth redirect URL to the daemon"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("url")

    select = subparsers.add_parser("select", help="Make a player active (omit to clear)")
    select.add_argument("player", nargs="?", default="")

    for name, help_text in (
        ("login", "Log in to a player's service"),
        ("logout", "Forget a player's stored credential"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("player", nargs="?", default="")

    for name, help_text in (
        ("enable", "Enable a player until the daemon restarts"),
        ("disable", "Disable a player until the daemon restarts"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("player")

    subparsers.add_parser("waybar", help="Emit Waybar JSON from daemon state")

    return parser.parse_args(argv)
