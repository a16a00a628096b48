"""Unit tests for auth/store.py -- account persistence and uniqueness.

Covers:
- create() assigns id and created_at, canonicalises the email
- exists_by_email() is case-insensitive; exists_by_emp_id() is exact
- find_by_identifier() resolves email first, then employee id
- Lookups return None for unknown keys (absence is not an error)
- Duplicate email / employee id raise DuplicateKeyError naming the field
- Concurrent creates with the same employee id: exactly one wins
- Backend failures surface as StorageFault
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from auth.errors import DuplicateKeyError, StorageFault
from auth.models import Account
from auth.store import AccountStore, normalize_email


def _account(**overrides) -> Account:
    fields = {
        "full_name": "Asha Rao",
        "department": "Eng",
        "emp_id": "E100",
        "password_hash": "$2b$04$fakehashfakehashfakehu3N7xX8mQ0e8GqkQk0yXxYw2kP9e5iG",
        "mobile_no": "9998887776",
        "company_email": "asha@co.com",
    }
    fields.update(overrides)
    return Account(**fields)


# ---------------------------------------------------------------------------
# create / lookups
# ---------------------------------------------------------------------------


class TestCreate:
    def test_create_assigns_id_and_timestamp(self, store: AccountStore) -> None:
        saved = store.create(_account())
        assert saved.id is not None
        assert saved.created_at
        assert saved.updated_at is None

    def test_create_canonicalises_email(self, store: AccountStore) -> None:
        saved = store.create(_account(company_email="  Asha@Co.COM "))
        assert saved.company_email == "asha@co.com"
        assert store.find_by_id(saved.id).company_email == "asha@co.com"

    def test_created_account_round_trips(self, store: AccountStore) -> None:
        saved = store.create(_account())
        assert store.find_by_id(saved.id) == saved

    def test_ids_are_distinct(self, store: AccountStore) -> None:
        first = store.create(_account())
        second = store.create(_account(emp_id="E200", company_email="ravi@co.com"))
        assert first.id != second.id

    def test_empty_password_hash_is_refused(self, store: AccountStore) -> None:
        with pytest.raises(ValueError):
            store.create(_account(password_hash=""))
        assert not store.exists_by_emp_id("E100")


class TestLookups:
    def test_exists_by_email_ignores_case(self, store: AccountStore) -> None:
        store.create(_account())
        assert store.exists_by_email("ASHA@co.com")
        assert not store.exists_by_email("ravi@co.com")

    def test_exists_by_emp_id_is_exact(self, store: AccountStore) -> None:
        store.create(_account())
        assert store.exists_by_emp_id("E100")
        assert not store.exists_by_emp_id("e100")

    def test_find_by_identifier_matches_email(self, store: AccountStore) -> None:
        saved = store.create(_account())
        assert store.find_by_identifier("Asha@Co.com").id == saved.id

    def test_find_by_identifier_matches_emp_id(self, store: AccountStore) -> None:
        saved = store.create(_account())
        assert store.find_by_identifier("E100").id == saved.id

    def test_find_by_identifier_prefers_email_match(self, store: AccountStore) -> None:
        # One account's employee id equals another account's email.
        by_emp = store.create(_account(emp_id="x@co.com", company_email="first@co.com"))
        by_email = store.create(_account(emp_id="E200", company_email="x@co.com"))
        assert store.find_by_identifier("x@co.com").id == by_email.id
        assert by_emp.id != by_email.id

    def test_find_by_mobile(self, store: AccountStore) -> None:
        saved = store.create(_account())
        assert store.find_by_mobile("9998887776").id == saved.id
        assert store.find_by_mobile("0000000000") is None

    @pytest.mark.parametrize("identifier", ["nobody@co.com", "E999", ""])
    def test_unknown_identifier_returns_none(self, store: AccountStore, identifier: str) -> None:
        store.create(_account())
        assert store.find_by_identifier(identifier) is None

    def test_unknown_id_returns_none(self, store: AccountStore) -> None:
        assert store.find_by_id(12345) is None


# ---------------------------------------------------------------------------
# Uniqueness
# ---------------------------------------------------------------------------


class TestUniqueness:
    def test_duplicate_emp_id_raises(self, store: AccountStore) -> None:
        store.create(_account())
        with pytest.raises(DuplicateKeyError) as info:
            store.create(_account(company_email="other@co.com"))
        assert info.value.field == "emp_id"

    def test_duplicate_email_raises(self, store: AccountStore) -> None:
        store.create(_account())
        with pytest.raises(DuplicateKeyError) as info:
            store.create(_account(emp_id="E200"))
        assert info.value.field == "company_email"

    def test_duplicate_email_differing_only_in_case_raises(self, store: AccountStore) -> None:
        store.create(_account())
        with pytest.raises(DuplicateKeyError):
            store.create(_account(emp_id="E200", company_email="ASHA@CO.COM"))

    def test_rejected_duplicate_leaves_one_row(self, store: AccountStore) -> None:
        store.create(_account())
        with pytest.raises(DuplicateKeyError):
            store.create(_account(company_email="other@co.com", full_name="Impostor"))
        assert store.find_by_identifier("E100").full_name == "Asha Rao"
        assert store.find_by_identifier("other@co.com") is None

    def test_concurrent_creates_with_same_emp_id_have_one_winner(self, file_store: AccountStore) -> None:
        workers = 8
        barrier = threading.Barrier(workers)

        def attempt(n: int) -> str:
            barrier.wait()
            try:
                file_store.create(_account(company_email=f"user{n}@co.com"))
                return "ok"
            except DuplicateKeyError:
                return "duplicate"

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(attempt, range(workers)))

        assert results.count("ok") == 1
        assert results.count("duplicate") == workers - 1


# ---------------------------------------------------------------------------
# Faults
# ---------------------------------------------------------------------------


class TestStorageFaults:
    def test_lookup_on_broken_backend_raises_storage_fault(self, tmp_path) -> None:
        s = AccountStore(f"sqlite:///{tmp_path / 'gone.db'}")
        with s.engine.connect() as conn:
            conn.exec_driver_sql("DROP TABLE accounts")
            conn.commit()
        with pytest.raises(StorageFault):
            s.find_by_identifier("asha@co.com")
        with pytest.raises(StorageFault):
            s.create(_account())
        s.close()


def test_normalize_email() -> None:
    assert normalize_email("  Asha@Co.COM\n") == "asha@co.com"
