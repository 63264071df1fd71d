#!/usr/bin/env python3
"""
Verification script to check that the FusionPay API setup is complete.
Run this before starting the application.
"""

import os
import sys
import importlib.util

from dotenv import load_dotenv


def check_module(module_name: str) -> bool:
    """Check if a Python module is installed."""
    spec = importlib.util.find_spec(module_name)
    return spec is not None


def main():
    print("🔍 Verifying FusionPay API Setup...\n")

    all_good = True

    # Check required modules
    required_modules = {
        "fastapi": "FastAPI",
        "uvicorn": "Uvicorn",
        "asyncpg": "asyncpg (PostgreSQL driver)",
        "web3": "web3.py (contract calls)",
        "eth_account": "eth-account (custody wallets)",
        "pydantic": "Pydantic",
        "pydantic_settings": "Pydantic Settings",
        "dotenv": "python-dotenv"
    }

    print("📦 Checking dependencies:")
    for module, name in required_modules.items():
        if check_module(module):
            print(f"  ✅ {name}")
        else:
            print(f"  ❌ {name} - NOT FOUND")
            all_good = False

    # Check file structure
    print("\n📁 Checking file structure:")
    required_files = [
        "app/core/config.py",
        "app/core/exceptions.py",
        "app/db/database.py",
        "app/users/models.py",
        "app/users/repository.py",
        "app/users/routers.py",
        "app/packages/chain/abi.py",
        "app/packages/chain/client.py",
        "app/packages/payments/repository.py",
        "app/packages/payments/service.py",
        "app/packages/payments/routers.py",
        "app/main.py",
        "pyproject.toml"
    ]

    for file_path in required_files:
        if os.path.exists(file_path):
            print(f"  ✅ {file_path}")
        else:
            print(f"  ❌ {file_path} - NOT FOUND")
            all_good = False

    # Check configuration
    print("\n⚙️  Checking configuration:")
    if os.path.exists(".env"):
        print("  ✅ .env file exists")
        load_dotenv()
    else:
        print("  ⚠️  .env file not found")

    for var in ("DATABASE_URL", "CHAIN_RPC_URL", "SYSTEM_WALLET_PRIVATE_KEY"):
        if os.getenv(var):
            print(f"  ✅ {var} is set")
        else:
            print(f"  ❌ {var} is not set")
            all_good = False

    if not os.getenv("FUSIONPAY_CONTRACT_ADDRESS"):
        print("  ⚠️  FUSIONPAY_CONTRACT_ADDRESS not set (using the default deployment)")

    # Summary
    print("\n" + "="*50)
    if all_good:
        print("✨ All checks passed! Ready to run the application.")
        print("\nNext steps:")
        print("  1. Ensure PostgreSQL is running")
        print("  2. Run: python migrate_db.py")
        print("  3. Run: uvicorn app.main:app --reload")
    else:
        print("❌ Some checks failed. Please fix the issues above.")
        sys.exit(1)

if __name__ == "__main__":
    main()
