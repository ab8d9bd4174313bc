"""Simple entrypoint to run the Smart Closet core locally."""

import asyncio
import sys

from closet_app.app import SmartClosetApp


async def _run(username: str | None) -> None:
    app = SmartClosetApp()
    account = await app.boot()
    if username:
        account = await app.login(username)
    if account is None:
        print("No stored session. Run with a username to log in.")
        return
    print(f"Closet for {account.username}: {len(app.state.items)} items, {len(app.state.outfits)} outfits")

    stop = asyncio.Event()
    try:
        await app.run_queue(stop)
    finally:
        stop.set()


def main() -> None:
    username = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(_run(username))
    except KeyboardInterrupt:
        print("Stopped.")


if __name__ == "__main__":
    main()
