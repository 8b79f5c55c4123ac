"""Create the demo tenants, accounts and notes used for local development."""

from __future__ import annotations

import argparse
import logging

from scripts._path import add_root

add_root()

import models  # noqa: F401,E402
from database import Base, engine, session_scope  # noqa: E402
from services.seed_service import DEMO_PASSWORD, seed_demo_data  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed demo tenants for the notes API.")
    parser.add_argument("--reset", action="store_true", help="Delete every tenant, user and note before seeding.")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        emails = seed_demo_data(session, reset=args.reset)

    if not emails:
        logger.info("Demo tenants already exist; nothing to do.")
        return
    for email in emails:
        logger.info("Seeded %s (password: %s)", email, DEMO_PASSWORD)


if __name__ == "__main__":
    main()
