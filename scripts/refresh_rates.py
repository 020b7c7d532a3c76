"""
Manual rate refresh — fetches upstream rates once from the command line.

Usage:
    python scripts/refresh_rates.py

Writes the shared Redis snapshot exactly like the Celery beat task, without
waiting for the schedule.
"""

import asyncio
import json

from evoke.tasks.rate_tasks import refresh_rates_once


async def main():
    """Run one refresh and print the result."""
    print("Refreshing exchange rates...")
    result = await refresh_rates_once()

    print("\n=== Exchange Rate Refresh ===")
    print(json.dumps(result, indent=2))
    if result["source"] != "live":
        print("\nUpstream unavailable; check EXCHANGE_RATE_API_KEY and connectivity.")


if __name__ == "__main__":
    asyncio.run(main())
