"""Delete every record from the configured database and reset patient codes.

Usage: python scripts/clean_database.py --yes
"""

import argparse
import asyncio
import logging

from carefile.database import close_db, get_db, init_db
from carefile.services import records

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("clean_database")


async def main() -> None:
    await init_db()
    try:
        db = await get_db()
        counts = await records.clean_database(db)
    finally:
        await close_db()
    logger.info("Deleted: %s", counts.model_dump_json())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--yes", action="store_true", help="confirm deletion of all data")
    args = parser.parse_args()
    if not args.yes:
        parser.error("refusing to delete all data without --yes")
    asyncio.run(main())
