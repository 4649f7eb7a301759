#!/usr/bin/env python3
"""
Session Keeper -- watch a login session and renew it before it lapses.

Logs in to a running session service, then polls the refresh token status
and shows the renewal prompt in the terminal when the session is about to
expire. The session ends (exactly once) when the countdown runs out, when the
server reports the credential gone, or on Ctrl-C.

Usage:
  python main.py --username alice
  python main.py --username alice --status
  python main.py --username alice --auto-renew
  python main.py --url http://localhost:8000 --username alice --no-color

Environment variables:
  SESSIONKEEPER_PASSWORD   Password to use instead of prompting for one.
"""

import argparse
import asyncio
import getpass
import logging
import os
from typing import Optional

from session.client import SessionApiClient, SessionApiError
from session.manager import SessionSupervisor
from session.models import TICK_INTERVAL_SECONDS
from session.notify import Notification, Notifier


def _print_notification(note: Notification) -> None:
    print(f"  [{note.level.value}] {note.message}")


async def _watch(client: SessionApiClient, auto_renew: bool, color: Optional[bool]) -> None:
    """Run one supervised session until it ends."""
    notifier = Notifier(sink=_print_notification)
    supervisor = SessionSupervisor(
        client.status_source,
        client.renew_session,
        client.terminate_session,
        notifier=notifier,
    )
    supervisor.start()
    print("Watching session. Press Ctrl-C to log out.\n")
    last_shown: Optional[int] = None
    try:
        while not supervisor.ended:
            prompt = supervisor.prompt
            if prompt is None:
                last_shown = None
            else:
                view = prompt.render()
                if view.countdown_seconds != last_shown:
                    print(prompt.to_text(color=color))
                    last_shown = view.countdown_seconds
                if auto_renew and not view.buttons_disabled:
                    print("  Auto-renewing...")
                    await prompt.press_renew()
            await asyncio.sleep(TICK_INTERVAL_SECONDS / 4)
    except asyncio.CancelledError:
        # Ctrl-C: log out through the same latch as every other trigger.
        if supervisor.logout():
            await asyncio.shield(supervisor.wait_ended())
        raise
    finally:
        supervisor.stop()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="session-keeper",
        description="Watch a login session and renew it before it expires.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --username alice
  python main.py --username alice --status
  python main.py --username alice --auto-renew
        """,
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        metavar="URL",
        help="Base URL of the session service (default: http://localhost:8000)",
    )
    parser.add_argument("--username", required=True, help="Account to log in as")
    parser.add_argument(
        "--password",
        default=None,
        help="Password (default: $SESSIONKEEPER_PASSWORD, else prompt)",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the current token status once and exit",
    )
    parser.add_argument(
        "--auto-renew",
        action="store_true",
        help="Extend the session automatically whenever the prompt appears",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable ANSI color codes in terminal output",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output (polls, countdown corrections)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    password = args.password or os.environ.get("SESSIONKEEPER_PASSWORD") or getpass.getpass("Password: ")
    client = SessionApiClient(args.url)

    try:
        client.login(args.username, password)
    except SessionApiError as e:
        print(f"  [!] {e}")
        raise SystemExit(1) from e

    print(f"\nSession Keeper -- logged in as {client.username}")
    print("─" * 40)

    try:
        if args.status:
            status = client.fetch_token_status()
            print(f"  valid:            {status.is_valid}")
            print(f"  time remaining:   {status.time_remaining if status.time_remaining is not None else 'unknown'}")
            print(f"  about to expire:  {status.is_about_to_expire}")
            return
        asyncio.run(_watch(client, args.auto_renew, False if args.no_color else None))
    except SessionApiError as e:
        print(f"  [!] {e}")
        raise SystemExit(1) from e
    except KeyboardInterrupt:
        print("\n  Interrupted.")
    finally:
        client.close()


if __name__ == "__main__":
    main()
