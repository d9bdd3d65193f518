#!/usr/bin/env python3
"""
KGL Groceries API -- admin command line.

User routes require a bearer token, so the first account has to be created
here, directly against the database named by DATABASE_URL.

Usage:
  python main.py create-user --username simon --email simon@kgl.ug --password s3cret! --role Manager
  python main.py create-user --username amina --email amina@kgl.ug --password s3cret! \\
      --role "Sales Agent" --contact 0772123456
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables (or .env):
  DATABASE_URL   SQLAlchemy URL (default: sqlite:///kgl_groceries.db)
  BCRYPT_ROUNDS  bcrypt work factor for new password hashes (default: 10)
  SECRET_KEY     token signing key used by the server
"""

import argparse
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.passwords import CredentialVerifier
from core.config import get_settings
from core.errors import ValidationError
from core.models import Role
from core.validation import FieldValidator, SchemaKind
from records.store import RecordKind, RecordStore, to_columns


def create_user(
    store: RecordStore,
    verifier: CredentialVerifier,
    username: str,
    email: str,
    password: str,
    role: str,
    contact: Optional[str] = None,
) -> dict:
    """Validate and store one account. Returns the stored record.

    Raises ValidationError on bad input and IntegrityError when the username
    or email is already taken.
    """
    raw = {"username": username, "email": email, "password": password, "role": role}
    if contact:
        raw["contact"] = contact
    fields = FieldValidator().validate(raw, SchemaKind.USER)
    columns = to_columns({k: v for k, v in fields.items() if k != "password"})
    columns["password_hash"] = verifier.hash(fields["password"])
    return store.create(RecordKind.USER, columns)


def _cmd_create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = RecordStore(settings.database_url)
    try:
        record = create_user(
            store,
            CredentialVerifier(rounds=settings.bcrypt_rounds),
            args.username,
            args.email,
            args.password,
            args.role,
            args.contact,
        )
    except ValidationError as e:
        print(f"  [!] {e.message}", file=sys.stderr)
        return 1
    except IntegrityError:
        print("  [!] User already exists", file=sys.stderr)
        return 1
    finally:
        store.close()
    print(f"  Created {record['role']} '{record['username']}' (id={record['id']}).")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="kgl-groceries",
        description="Admin commands for the KGL Groceries API.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a Manager or Sales Agent account")
    create.add_argument("--username", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument(
        "--role",
        required=True,
        choices=[r.value for r in Role],
        help="Account role: Manager or 'Sales Agent'",
    )
    create.add_argument("--contact", default=None, help="Ugandan phone number (optional)")
    create.set_defaults(handler=_cmd_create_user)

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(handler=_cmd_serve)

    args = parser.parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
