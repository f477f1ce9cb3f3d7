"""Hybrid AI Coach - Entry Point"""

import asyncio
import os
from hybrid_ai.core.logging.logger import setup_production_logging, setup_dev_logging
from hybrid_ai.core.config.container import setup_container

DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

# Logging before anything else
if DEV_MODE:
    setup_dev_logging()
else:
    setup_production_logging()


async def main():
    """Application entry point"""
    container = setup_container(os.getenv("HYBRID_AI_CONFIG", "config/orchestrator.yaml"))
    ui = container.console_ui()
    await ui.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nGoodbye!\n")
