"""Example 01: Start a voice agent session

Demonstrates how to:
- Load session and client settings from .env
- Start a session (credentials → room connect → microphone)
- Observe the is_active flag
- Dispose the controller, which disconnects the room

Prerequisites:
- A connection-details endpoint reachable at VOICE_SESSION_BASE_URL
- Optionally SANDBOX_ID / AGENT_NAME / PRE_CONNECT_BUFFER_ENABLED in .env
- `pip install -e .[audio]` for microphone capture
"""

import argparse
import asyncio
import logging

from voice_session import ClientConfig, SessionConfig, SessionController
from voice_session.logging_setup import configure_logging

logger = logging.getLogger(__name__)


async def main(duration: float) -> None:
    """Run a session for ``duration`` seconds."""
    session = SessionConfig.from_env()
    config = ClientConfig()
    configure_logging(config.log_level)
    logger.info("Connection details endpoint: %s", config.connection_details_url)

    async with SessionController(session, config) as controller:
        controller.is_active.subscribe(lambda active: logger.info("Session active: %s", active))

        controller.start()
        await controller.drain()
        logger.info("State after startup: %s", controller.state.value)

        try:
            await asyncio.sleep(duration)
        except asyncio.CancelledError:
            pass
        finally:
            controller.stop()

    logger.info("Disconnected.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Start a voice agent session.")
    parser.add_argument("--duration", type=float, default=30.0, help="seconds to keep the session open")
    args = parser.parse_args()
    try:
        asyncio.run(main(args.duration))
    except KeyboardInterrupt:
        print("\nGoodbye!")
