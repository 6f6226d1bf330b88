from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from sweeps.db.engine import make_engine


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def print_tables() -> None:
    """List the draw tables present in the configured database."""
    engine = make_engine()
    insp = inspect(engine)
    tables = sorted(name for name in insp.get_table_names() if name != "alembic_version")
    print(f"{len(tables)} tables:", ", ".join(tables))


def main() -> None:
    """Migrate the draw schema to head and report the resulting tables."""
    upgrade_db()
    print_tables()


if __name__ == "__main__":
    main()
