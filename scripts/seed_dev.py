import logging
import random

from fortunespin.config import load_settings
from fortunespin.db.engine import get_sessionmaker, make_engine
from fortunespin.ledger import LedgerLimits
from fortunespin.models import Base, User
from fortunespin.rewards import load_catalog
from fortunespin.workflows import AwardOrchestrator

SEED_USERS = ("Alice", "Bob")
DRAWS_PER_USER = 5


def main() -> None:
    """Seed the development database with users, draws and one spend."""
    logging.basicConfig(level=logging.INFO)
    settings = load_settings()
    engine = make_engine(settings.database_url)

    # Drop and recreate all tables for a clean development schema.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    catalog = load_catalog(
        settings.catalog_path, limits=LedgerLimits.from_settings(settings)
    )
    rng = random.Random(2024)

    with Session.begin() as session:
        users = []
        for name in SEED_USERS:
            user = User.get_by_name(session, name)
            if user is None:
                user = User(name=name)
                session.add(user)
            users.append(user)
        session.flush()

        awards = AwardOrchestrator(
            session, catalog=catalog, random_source=rng, settings=settings
        )
        for user in users:
            for _ in range(DRAWS_PER_USER):
                awards.execute_draw(user.id)

        first = users[0]
        awards.spend_points(first.id, 10, "Dev seed purchase")
        for user in users:
            print(f"{user.name}: {awards.get_balance(user.id)} points")


if __name__ == "__main__":
    main()
