"""
Command-line launcher for a guildlink gateway client.

Connects with the configured credential, logs the READY user and answers the
``ping`` command with ``pong`` until interrupted.
"""

import argparse
import asyncio
import dataclasses
import logging

from guildlink.client.config import load_gateway_config
from guildlink.client.gateway_client import GatewayClient

logger = logging.getLogger(__name__)


def build_client(config) -> GatewayClient:
    client = GatewayClient(config)

    @client.on_event("ready")
    def _ready(data):
        user = data.get("user") or {}
        logger.info("Logged in as %s", user.get("username"))

    @client.register_command("ping")
    async def _ping(message, _remainder):
        await client.create_message(message["channel_id"], "pong")

    return client


async def _run(client: GatewayClient) -> None:
    try:
        await client.run_forever()
    finally:
        await client.close()


def main(argv=None) -> None:
    config = load_gateway_config()
    parser = argparse.ArgumentParser(description='guildlink gateway client')
    parser.add_argument('--token', default=config.token)
    parser.add_argument('--prefix', default=config.command_prefix)
    parser.add_argument('--intents', type=int, default=config.intents)
    parser.add_argument('--user', action='store_true', help='authenticate as a user account, not a bot')
    parser.add_argument('--debug', action='store_true', default=config.debug)
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='[%(asctime)s] %(name)s - %(levelname)s - %(message)s'
    )
    if not args.token:
        parser.error('a token is required (--token or GUILDLINK_TOKEN)')

    config = dataclasses.replace(
        config,
        token=args.token,
        command_prefix=args.prefix,
        intents=args.intents,
        is_bot=config.is_bot and not args.user,
        debug=args.debug,
    )
    client = build_client(config)
    try:
        asyncio.run(_run(client))
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")


if __name__ == '__main__':
    main()
