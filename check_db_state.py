import asyncio
import os

import asyncpg
from dotenv import load_dotenv

load_dotenv()


def needs_reconciliation(row) -> bool:
    """A transaction that reached the chain but whose balances were never settled."""
    return bool(row['transaction_hash']) and row['status'] != 'completed'


async def check():
    conn = await asyncpg.connect(os.getenv('DATABASE_URL'))
    users = await conn.fetch(
        "SELECT uid, fusion_pay_id, blockchain_address, on_chain_registered, balances FROM users ORDER BY created_at"
    )
    transactions = await conn.fetch(
        "SELECT tx_id, sender_uid, recipient_fusion_pay_id, amount_to_send, currency_from, currency_to, "
        "status, transaction_hash, internal_error FROM transactions ORDER BY created_at DESC LIMIT 50"
    )
    status_counts = await conn.fetch("SELECT status, COUNT(*) AS n FROM transactions GROUP BY status")

    print(f"Users: {len(users)}")
    for u in users:
        flag = "registered" if u['on_chain_registered'] else "NOT REGISTERED"
        print(f"  - UID: {u['uid']}, FusionPay ID: {u['fusion_pay_id']}, Address: {u['blockchain_address']} ({flag})")
        print(f"    Balances: {u['balances']}")

    print("\nTransactions by status:")
    for row in status_counts:
        print(f"  - {row['status']}: {row['n']}")

    print(f"\nLatest transactions: {len(transactions)}")
    for t in transactions:
        print(
            f"  - {t['tx_id']}: {t['sender_uid']} -> {t['recipient_fusion_pay_id']} "
            f"{t['amount_to_send']} {t['currency_from']}->{t['currency_to']} [{t['status']}]"
        )
        if t['transaction_hash']:
            print(f"    Hash: {t['transaction_hash']}")
        if t['internal_error']:
            print(f"    Internal error: {t['internal_error']}")
        if needs_reconciliation(t):
            print("    Needs reconciliation")

    await conn.close()

if __name__ == "__main__":
    asyncio.run(check())
