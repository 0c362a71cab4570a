"""
salesdash entry point.

Builds the data layer from settings, pre-warms the caches and keeps the
process alive so the caches stay hot for the dashboard.
"""

import asyncio

from loguru import logger

from salesdash.datasource import SheetsDataSource
from salesdash.services import CacheRegistry, SalesTracker, WriteQueue
from salesdash.settings import Settings, global_settings


def build_tracker(settings: Settings) -> SalesTracker:
    """Wire the caches, write queue and data source together."""
    data_source = SheetsDataSource(
        spreadsheet_id=settings.spreadsheet_id,
        credentials_file=settings.google_credentials_file,
        users_sheet=settings.users_sheet_name,
        admin_agent_name=settings.admin_agent_name,
    )
    write_queue = WriteQueue(
        max_retries=settings.retry_max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        min_delay=settings.write_min_delay,
    )
    return SalesTracker(
        CacheRegistry.from_settings(settings),
        data_source,
        write_queue,
        max_retries=settings.retry_max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )


async def main() -> None:
    logger.info("Starting salesdash...")

    tracker = build_tracker(global_settings)
    if not tracker.data_source.is_configured():
        logger.error("SPREADSHEET_ID is not set, nothing to serve")
        return

    try:
        await tracker.warm()
        logger.info(f"Cache status: {tracker.get_health_status()}")

        logger.info("salesdash is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    finally:
        await tracker.close()
        logger.info("salesdash stopped")


if __name__ == "__main__":
    asyncio.run(main())
