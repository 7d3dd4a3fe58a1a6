"""Re-derive every dossier's remaining count from its production logs.

    python scripts/reconcile_ledger.py            # all dossiers
    python scripts/reconcile_ledger.py FN-0042    # one dossier
    python scripts/reconcile_ledger.py --dry-run  # report drift, change nothing
"""

import argparse
import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from protrack.core.cache import clear_cache_pattern, close_redis_client
from protrack.core.db import SessionLocal, repeatable_read_transaction
from protrack.core.db_retry import with_db_retry
from protrack.core.events import MONITOR_CACHE_PATTERN
from protrack.core.logging import setup_logging
from protrack.services.ledger import Reconciliation, reconcile_all, reconcile_program


class _DryRun(Exception):
    """Raised inside the transaction so that nothing is committed."""

    def __init__(self, results: list[Reconciliation]):
        super().__init__("dry run")
        self.results = results


async def run(file_numbers: list[str], dry_run: bool) -> int:
    async with SessionLocal() as session:

        async def _reconcile_once() -> list[Reconciliation]:
            async with repeatable_read_transaction(session):
                if not file_numbers:
                    results = await reconcile_all(session)
                else:
                    results = []
                    for file_number in file_numbers:
                        outcome = await reconcile_program(session, file_number)
                        if outcome is None:
                            print(f"{file_number}: not found")
                        else:
                            results.append(outcome)
                if dry_run:
                    raise _DryRun(results)
                return results

        try:
            results = await with_db_retry(session, _reconcile_once)
        except _DryRun as rolled_back:
            results = rolled_back.results

    drifted = [r for r in results if r.drift]
    for r in drifted:
        print(f"{r.file_number}: {r.previous} -> {r.reconciled} (drift {r.drift:+d})")
    verb = "would change" if dry_run else "changed"
    print(f"{len(results)} dossiers checked, {len(drifted)} {verb}")
    if drifted and not dry_run:
        await clear_cache_pattern(MONITOR_CACHE_PATTERN)
    await close_redis_client()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("file_numbers", nargs="*")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    setup_logging(script=True)
    return asyncio.run(run(args.file_numbers, args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
