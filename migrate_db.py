import asyncio
import os

from dotenv import load_dotenv

# Load environment variables before the settings module reads them
load_dotenv()

from app.db.database import close_pool, get_pool, init_db  # noqa: E402

DATABASE_URL = os.getenv("DATABASE_URL")


async def migrate():
    print(f"Connecting to {DATABASE_URL}...")
    try:
        print("Creating users and transactions tables...")
        await init_db()

        pool = await get_pool()
        async with pool.acquire() as conn:
            print("\nVerifying columns...")
            user_cols = await conn.fetch("SELECT column_name FROM information_schema.columns WHERE table_name = 'users';")
            user_col_names = [c['column_name'] for c in user_cols]
            print(f"Users columns: {user_col_names}")

            tx_cols = await conn.fetch("SELECT column_name FROM information_schema.columns WHERE table_name = 'transactions';")
            tx_col_names = [c['column_name'] for c in tx_cols]
            print(f"Transactions columns: {tx_col_names}")

        if 'balances' in user_col_names and 'idempotency_key' in tx_col_names:
            print("\nMigration verified successful!")
        else:
            print("\nMigration FAILED verification.")

    except Exception as e:
        print(f"Migration failed: {e}")
    finally:
        await close_pool()


if __name__ == "__main__":
    asyncio.run(migrate())
