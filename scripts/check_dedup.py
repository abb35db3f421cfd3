"""Check deduplication status in the database."""
import asyncio

from job_ingest.database.operations import Database
from job_ingest.utils.config import settings


async def check():
    db = Database(settings.database_url)
    await db.connect()
    try:
        total = await db.count_jobs()
        print(f"Total jobs in DB: {total:,}")

        print("\nJobs per source label:")
        for label, count in (await db.count_jobs_by_source_label()).items():
            print(f"  {label:10s}: {count:,}")

        dups = await db.find_duplicate_identities(limit=15)
        print(f"\nDuplicate (title, company, location) groups: {len(dups)}")
        for group in dups:
            print(f"  {group['count']} copies: {group['title'][:60]:60s} @ company #{group['company_id']} ({group['location']})")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(check())
