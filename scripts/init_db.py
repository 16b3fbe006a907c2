from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from fortunespin.config import load_settings
from fortunespin.db.engine import make_engine
from fortunespin.ledger import LedgerLimits
from fortunespin.rewards import load_catalog

logger = logging.getLogger("fortunespin.scripts.init_db")


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to the requested revision."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def print_tables() -> None:
    """Inspect the configured database and print all table names."""
    engine = make_engine()
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))


def main() -> None:
    """Validate the reward catalog, apply migrations and report the schema.

    The catalog is checked first so that a malformed catalog stops the
    deployment before the database is touched.
    """
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    catalog = load_catalog(
        settings.catalog_path, limits=LedgerLimits.from_settings(settings)
    )
    logger.info("Reward catalog OK: %d rewards", len(catalog))
    upgrade_db()
    print_tables()


if __name__ == "__main__":
    main()
