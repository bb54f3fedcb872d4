"""Demo entry point — generates sample logs and ships them with a Logpush agent."""

import asyncio
import logging
import random
import signal
import time

from logpush.agent import Agent
from logpush.config import AgentConfig, load_agent_config
from logpush.transport import TransportError

logger = logging.getLogger(__name__)

SAMPLE_MESSAGES = [
    "User logged in",
    "Request processed successfully",
    "Database query completed",
    "Cache miss for key",
    "Configuration reloaded",
    "Health check passed",
    "Connection timeout to upstream",
    "Disk usage above threshold",
    "Authentication failed for user",
    "Service restarted",
]
SAMPLE_LEVELS = ["debug", "info", "info", "info", "warn", "error"]


def emit_sample_log(agent: Agent) -> None:
    """Push one random entry through either the logger or the console surface."""
    level = random.choice(SAMPLE_LEVELS)
    message = random.choice(SAMPLE_MESSAGES)
    if random.random() < 0.5:
        getattr(agent.logger, level)(message, {"latency_ms": random.randint(1, 500)})
    else:
        getattr(agent.console, level)(message, {"request_id": random.randint(1000, 9999)})


async def flush_safely(agent: Agent) -> None:
    try:
        await agent.flush()
    except TransportError as exc:
        logger.warning("Flush failed, %d entries kept: %s", agent.pending_count, exc.detail)


async def run(config: AgentConfig, shutdown: asyncio.Event) -> None:
    agent = Agent.from_config(config)
    logger.info(
        "Starting logpush client: url=%s, flush_interval=%.1fs, logs_per_second=%d",
        agent.url,
        config.flush_interval,
        config.logs_per_second,
    )
    last_flush = time.monotonic()

    try:
        for _ in range(config.run_time):
            if shutdown.is_set():
                break

            for _ in range(config.logs_per_second):
                emit_sample_log(agent)

            if time.monotonic() - last_flush >= config.flush_interval:
                await flush_safely(agent)
                last_flush = time.monotonic()

            try:
                await asyncio.wait_for(shutdown.wait(), timeout=1.0)
            except asyncio.TimeoutError:
                pass
    finally:
        await flush_safely(agent)
        try:
            await agent.aclose()
        except TransportError as exc:
            logger.error("Final flush failed, dropping %d entries: %s", agent.pending_count, exc.detail)
        logger.info("Agent metrics: %s", agent.metrics.snapshot())


async def main_async(config: AgentConfig) -> None:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal(signum):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, handle_signal, signum)

    await run(config, shutdown)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = load_agent_config()

    try:
        asyncio.run(main_async(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
