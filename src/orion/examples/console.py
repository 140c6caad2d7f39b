import argparse
import asyncio
import logging
from pathlib import Path

from orion.config.resolver import ConfigResolver
from orion.config.settings import SETTINGS_KEY, JsonFileSettingsStore
from orion.consumers.base import Consumer
from orion.protocol.events import EventReceived, RelayMessage, StatusChanged
from orion.relay.relay import Relay


class ConsoleConsumer(Consumer):
    """Prints the conversation to stdout."""

    @property
    def handle(self) -> str:
        return "console"

    async def deliver(self, message: RelayMessage) -> None:
        if isinstance(message, StatusChanged):
            state = "connected" if message.connected else "disconnected"
            print(f"[{state}] {message.reason or ''}".rstrip())
        elif isinstance(message, EventReceived):
            print(f"--- {message.event.type} ({len(message.event.items)} items)")
            for item in message.event.items:
                print(f"{item.sender} [{item.kind}]: {item.content}")


async def main():
    parser = argparse.ArgumentParser(description="Follow an Orion conversation")
    parser.add_argument("--settings", default=Path.home() / ".orion" / "settings.json")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    args = parser.parse_args()

    store = JsonFileSettingsStore(args.settings)
    if args.host or args.port:
        settings = dict(store.get(SETTINGS_KEY) or {})
        if args.host:
            settings["serverHost"] = args.host
        if args.port:
            settings["serverPort"] = args.port
        store.set(SETTINGS_KEY, settings)

    relay = Relay(ConfigResolver(store))
    await relay.register(ConsoleConsumer())
    try:
        await asyncio.Event().wait()
    finally:
        await relay.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
