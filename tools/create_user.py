from __future__ import annotations

import argparse
import getpass

from app.auth import create_user
from app.db import SessionLocal, init_db
from app.errors import ConflictError
from app.models import Role

# Users are provisioned here, never through the API.


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Create a login for the trade back office.")
    ap.add_argument("email")
    ap.add_argument("name")
    ap.add_argument("--role", choices=[r.value for r in Role], default=Role.TEAM.value)
    ap.add_argument("--language", default="en")
    ap.add_argument("--password", help="prompted for when omitted")
    args = ap.parse_args(argv)

    password = args.password or getpass.getpass("Password: ")
    if not password:
        raise SystemExit("Password must not be empty")

    init_db()
    db = SessionLocal()
    try:
        u = create_user(
            db,
            email=args.email,
            name=args.name,
            password=password,
            role=Role(args.role),
            language=args.language,
        )
    except ConflictError as e:
        raise SystemExit(str(e))
    finally:
        db.close()

    print(f"OK  {u.email}  role={u.role}  id={u.id}")


if __name__ == "__main__":
    main()
