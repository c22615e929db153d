from __future__ import annotations

import argparse
import json

from app.db.session import SessionLocal, engine
from app.models import Base
from app.services.demo_seed import seed_demo_clinic


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a demo clinic with one user per role.")
    parser.add_argument(
        "--password",
        default="demo-password-123",
        help="Password for every demo login.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        result = seed_demo_clinic(session, password=args.password)
        session.commit()
        print(json.dumps(result, indent=2))
        return 0
    finally:
        session.close()


if __name__ == "__main__":
    raise SystemExit(main())
