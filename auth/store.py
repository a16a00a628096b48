"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Service and route code never touches SQL.

Uniqueness:
  company_email and emp_id each carry a named UNIQUE constraint. Existence
  checks in the service are a fast path for friendly messages only; the
  constraint is what decides a race. Two concurrent create() calls with the
  same emp_id both reach INSERT, the database accepts one, and the other
  raises IntegrityError, surfaced here as DuplicateKeyError.

  Emails are canonicalised (trim + lower-case) before every write and
  lookup, so the UNIQUE constraint on company_email behaves
  case-insensitively on any backend. Employee ids are matched exactly.

Absence is never an error: lookups return None / False.

No in-process lock is held around database calls; concurrency control is
left to the backing store.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateKeyError, StorageFault
from auth.models import Account

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(100), nullable=False),
    Column("department", String(50), nullable=False),
    Column("emp_id", String(20), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("mobile_no", String(15), nullable=False),
    Column("company_email", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
    UniqueConstraint("company_email", name="uq_accounts_company_email"),
    UniqueConstraint("emp_id", name="uq_accounts_emp_id"),
)

# Constraint / column names used to tell which key an IntegrityError hit.
# SQLite reports "accounts.emp_id"; PostgreSQL reports the constraint name.
_UNIQUE_FIELDS = ("company_email", "emp_id")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and a busy timeout on every new SQLite connection.

    WAL lets readers proceed while a writer commits. The busy timeout makes
    concurrent writers queue on the file lock instead of failing immediately.
    """
    dbapi_conn.execute("PRAGMA busy_timeout=5000")
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    """Return the canonical form used for storage and comparison."""
    return email.strip().lower()


def _duplicate_field(exc: IntegrityError) -> str | None:
    message = str(exc.orig)
    for field in _UNIQUE_FIELDS:
        if field in message:
            return field
    return None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        saved = store.create(Account(full_name="Asha Rao", ..., password_hash=hasher.hash("secret1")))
        store.find_by_identifier("asha@co.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    def exists_by_email(self, email: str) -> bool:
        """Return True if an account uses this email (case-insensitive)."""
        return self._first(_accounts.c.company_email == normalize_email(email)) is not None

    def exists_by_emp_id(self, emp_id: str) -> bool:
        """Return True if an account uses this employee id (exact match)."""
        return self._first(_accounts.c.emp_id == emp_id) is not None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_identifier(self, identifier: str) -> Account | None:
        """Resolve a login identifier: company email first, then employee id."""
        row = self._first(_accounts.c.company_email == normalize_email(identifier))
        if row is None:
            row = self._first(_accounts.c.emp_id == identifier)
        return _row_to_account(row) if row is not None else None

    def find_by_mobile(self, mobile_no: str) -> Account | None:
        """Look up an account by exact mobile number. Returns None if not found.

        mobile_no is not unique; when several accounts share a number the
        oldest one is returned.
        """
        row = self._first(_accounts.c.mobile_no == mobile_no)
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        row = self._first(_accounts.c.id == account_id)
        return _row_to_account(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, account: Account) -> Account:
        """Insert a new account and return it with id and created_at filled in.

        The UNIQUE constraints make the final call atomically at commit.
        Raises DuplicateKeyError if company_email or emp_id is already taken,
        StorageFault on any other database failure.
        """
        if not account.password_hash:
            raise ValueError("an account cannot be stored without a password hash")
        email = normalize_email(account.company_email)
        created_at = account.created_at or _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        full_name=account.full_name,
                        department=account.department,
                        emp_id=account.emp_id,
                        password_hash=account.password_hash,
                        mobile_no=account.mobile_no,
                        company_email=email,
                        created_at=created_at,
                        updated_at=None,
                    )
                )
                conn.commit()
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateKeyError(_duplicate_field(exc)) from exc
        except SQLAlchemyError as exc:
            raise StorageFault(f"could not create account: {exc}") from exc
        return replace(account, id=new_id, company_email=email, created_at=created_at, updated_at=None)

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _first(self, condition):
        try:
            with self.engine.connect() as conn:
                return conn.execute(_accounts.select().where(condition).order_by(_accounts.c.id)).first()
        except SQLAlchemyError as exc:
            raise StorageFault(f"account lookup failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        full_name=row.full_name,
        department=row.department,
        emp_id=row.emp_id,
        password_hash=row.password_hash,
        mobile_no=row.mobile_no,
        company_email=row.company_email,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
