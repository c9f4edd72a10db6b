"""
Operator script for API keys.

Usage:
    python scripts/manage_keys.py init-db                    # Create tables (development)
    python scripts/manage_keys.py issue user@gmail.com [plan] # Issue a key (plans: free, pro, enterprise)
    python scripts/manage_keys.py revoke <token>              # Revoke a key
    python scripts/manage_keys.py list user@gmail.com         # List an owner's keys
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from lynxa.core.database import init_database, create_tables, close_database, get_async_session
from lynxa.core.exceptions import LynxaError
from lynxa.core.security import mask_token_suffix
from lynxa.services.key_service import KeyService
from lynxa.services.key_store import KeyStore


async def run(command: str, args: list[str]) -> int:
    await init_database()
    try:
        if command == "init-db":
            await create_tables()
            print("Tables created")
            return 0

        async for session in get_async_session():
            service = KeyService(store=KeyStore(session))

            if command == "issue":
                issued, api_key = await service.issue(args[0], plan=args[1] if len(args) > 1 else None)
                print(f"Token:      {issued.token}")
                print(f"Owner:      {api_key.owner}")
                limit = "unlimited" if api_key.is_unlimited else f"{api_key.rate_limit} requests/window"
                print(f"Plan:       {api_key.plan} ({limit})")
                print(f"Expires at: {api_key.expires_at.isoformat()}")
            elif command == "revoke":
                api_key = await service.revoke(args[0])
                print(f"Revoked at {api_key.revoked_at.isoformat()}")
            elif command == "list":
                for api_key in await service.list_keys(args[0]):
                    state = "revoked" if api_key.revoked else "active"
                    print(
                        f"{mask_token_suffix(api_key.token_suffix)}  {api_key.plan:<10} "
                        f"{state:<8} expires {api_key.expires_at.isoformat()}"
                    )
            else:
                print(f"Unknown command: {command}")
                print(__doc__)
                return 1
        return 0
    finally:
        await close_database()


def main() -> int:
    if len(sys.argv) < 2 or (sys.argv[1] != "init-db" and len(sys.argv) < 3):
        print(__doc__)
        return 1

    try:
        return asyncio.run(run(sys.argv[1], sys.argv[2:]))
    except LynxaError as e:
        print(f"Error: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
