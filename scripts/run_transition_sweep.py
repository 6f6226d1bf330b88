"""Persist due draw transitions; meant to be run by cron once a day or more."""

from __future__ import annotations

import logging

from sweeps.config import load_settings
from sweeps.db.engine import get_sessionmaker, make_engine
from sweeps.draws import reconcile_pending_awards, run_transition_sweep


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    settings = load_settings()
    Session = get_sessionmaker(make_engine())

    with Session.begin() as session:
        result = run_transition_sweep(session, settings=settings)
        resolved = reconcile_pending_awards(session)

    print(
        f"Sweep finished: {len(result.frozen)} frozen, {len(result.completed)} completed, "
        f"{len(result.activated)} activated, "
        f"next draw {result.created_draw_id or 'not created'}, "
        f"{len(resolved)} pending awards resolved."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
