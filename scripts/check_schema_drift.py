from __future__ import annotations

import sys
from pathlib import Path

from alembic.autogenerate import api as ag_api
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from fortunespin.db.engine import make_engine
from fortunespin.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _alembic_heads() -> tuple[str, ...]:
    """Return the head revision(s) of the project's migration scripts."""
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return tuple(ScriptDirectory.from_config(cfg).get_heads())


def _print_ops(ops, indent: int = 0) -> None:
    prefix = "  " * indent
    for op in ops:
        print(f"{prefix}- {op}")
        sub_ops = getattr(op, "ops", None)
        if sub_ops:
            _print_ops(sub_ops, indent + 1)


def main() -> int:
    """Compare the point ledger schema with the models and migration head.

    Exit codes: 0 when the database is at the head revision and matches the
    models, 1 on drift or a pending migration, 2 when the check itself fails.
    """
    engine = make_engine()
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        heads = _alembic_heads()
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            current = context.get_current_revision()
            if current not in heads:
                print(
                    f"fortunespin schema: FAILED for {url_display}: database at "
                    f"revision {current or '<none>'}, migrations head is "
                    f"{', '.join(heads)}. Run scripts/init_db.py."
                )
                return 1

            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
            if upgrade_ops is None:
                print(f"fortunespin schema: ERROR for {url_display}: missing upgrade ops.")
                return 2
            if upgrade_ops.is_empty():
                print(f"fortunespin schema: OK at revision {current} for {url_display}.")
                return 0
            print(
                f"fortunespin schema: FAILED for {url_display}. Models differ from "
                f"revision {current}:"
            )
            _print_ops(upgrade_ops.ops or [])
            return 1
    except Exception as exc:
        print(f"fortunespin schema: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
