"""Compare the live database schema with the draw models.

Usage: ``python scripts/check_schema_drift.py [DB_URL]``. Exit status 0 means
no drift, 1 means the schema differs, 2 means the check itself failed.
"""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Connection

from sweeps.db.engine import make_engine
from sweeps.models import Base


def _format_ops(ops, indent: int = 0) -> list[str]:
    lines: list[str] = []
    for op in ops:
        lines.append(f"{'  ' * indent}- {op}")
        lines.extend(_format_ops(getattr(op, "ops", None) or [], indent + 1))
    return lines


def schema_differences(connection: Connection) -> Optional[list[str]]:
    """Return autogenerate operations needed to match the models.

    ``None`` signals that Alembic produced no upgrade operations at all.
    """
    context = MigrationContext.configure(
        connection=connection,
        opts={
            "compare_type": True,
            "compare_server_default": True,
            "render_as_batch": connection.dialect.name == "sqlite",
        },
    )
    upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    if upgrade_ops is None:
        return None
    return _format_ops(upgrade_ops.ops or [])


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    engine = make_engine(args[0] if args else None)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            differences = schema_differences(connection)
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2

    if differences is None:
        print(f"Schema drift check: ERROR for {url_display}: missing upgrade ops.")
        return 2
    if not differences:
        print(f"Schema drift check: OK (no differences) for {url_display}.")
        return 0
    print(f"Schema drift check: FAILED for {url_display}. Differences detected:")
    print("\n".join(differences))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
