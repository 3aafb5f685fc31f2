"""
Tenant IAM - Registration Transaction Tests

The user / organization / admin-staff triple is written atomically.

Run with: pytest tests/test_registration.py
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlmodel import select

from tenant_iam.auth.database import UnitOfWork
from tenant_iam.auth.models import Organization, Staff, User
from tenant_iam.auth.registration import RegistrationResult, register_tenant
from tenant_iam.auth.repositories import OrganizationRepository, StaffRepository, slugify
from tenant_iam.errors import DuplicateEmail, HashingError, TransactionFailure


PAYLOAD = dict(
    email="a@x.com",
    password="Secretpass1",
    first_name="A",
    last_name="B",
    org_name="Acme",
)


def _count(session_factory, model) -> int:
    with session_factory() as session:
        return len(session.exec(select(model)).all())


def _all_counts(session_factory):
    return tuple(_count(session_factory, m) for m in (User, Organization, Staff))


def _run_concurrently(*calls):
    """Start every call at the same moment; return each result or exception."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        return call()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(run, call) for call in calls]
        return [f.exception() or f.result() for f in futures]


class TestRegisterTenant:
    """register_tenant commit and rollback behaviour."""

    def test_creates_linked_user_org_and_admin_staff(self, make_uow, hasher, session_factory):
        """Registration creates a user, its organization and an admin membership."""
        result = register_tenant(make_uow(), hasher, **PAYLOAD)

        with session_factory() as session:
            user = session.get(User, result.user_id)
            org = session.get(Organization, result.org_id)
            staff = session.exec(select(Staff).where(Staff.user_id == result.user_id)).one()

        assert user.email == "a@x.com"
        assert user.is_active is True
        assert hasher.verify("Secretpass1", user.password_hash)
        assert user.password_hash != "Secretpass1"

        assert org.name == "Acme"
        assert org.slug == "acme"
        assert org.owner_user_id == user.id

        assert staff.id == result.staff_id
        assert staff.organization_id == org.id
        assert staff.role == "admin"
        assert staff.permissions == {}

    def test_email_is_case_sensitive_as_stored(self, make_uow, hasher, session_factory):
        """Emails differing only in case are distinct accounts."""
        register_tenant(make_uow(), hasher, **PAYLOAD)
        register_tenant(make_uow(), hasher, **{**PAYLOAD, "email": "A@x.com"})

        assert _count(session_factory, User) == 2

    def test_slug_is_made_unique(self, make_uow, hasher, session_factory):
        """Repeated organization names get -1, -2 suffixes."""
        register_tenant(make_uow(), hasher, **PAYLOAD)
        second = register_tenant(make_uow(), hasher, **{**PAYLOAD, "email": "b@x.com"})
        third = register_tenant(make_uow(), hasher, **{**PAYLOAD, "email": "c@x.com"})

        with session_factory() as session:
            assert session.get(Organization, second.org_id).slug == "acme-1"
            assert session.get(Organization, third.org_id).slug == "acme-2"

    def test_duplicate_email_rejected_without_partial_rows(self, make_uow, hasher, session_factory):
        """A duplicate email raises DuplicateEmail and writes nothing."""
        register_tenant(make_uow(), hasher, **PAYLOAD)

        with pytest.raises(DuplicateEmail):
            register_tenant(make_uow(), hasher, **{**PAYLOAD, "org_name": "Other"})

        assert _all_counts(session_factory) == (1, 1, 1)

    def test_failure_at_organization_insert_rolls_back_user(
        self, make_uow, hasher, session_factory, monkeypatch
    ):
        """A failing organization insert leaves no user row behind."""
        def boom(self, name, owner_user_id):
            raise RuntimeError("organization insert failed")

        monkeypatch.setattr(OrganizationRepository, "create", boom)

        with pytest.raises(TransactionFailure):
            register_tenant(make_uow(), hasher, **PAYLOAD)

        assert _all_counts(session_factory) == (0, 0, 0)

    def test_failure_at_staff_insert_rolls_back_user_and_org(
        self, make_uow, hasher, session_factory, monkeypatch
    ):
        """A failing staff insert leaves no user or organization behind."""
        def boom(self, *args, **kwargs):
            raise RuntimeError("staff insert failed")

        monkeypatch.setattr(StaffRepository, "create", boom)

        with pytest.raises(TransactionFailure):
            register_tenant(make_uow(), hasher, **PAYLOAD)

        assert _all_counts(session_factory) == (0, 0, 0)

    def test_expired_deadline_rolls_back_instead_of_committing(self, make_uow, hasher, session_factory):
        """A unit of work past its deadline rolls back at commit."""
        with pytest.raises(TransactionFailure):
            register_tenant(make_uow(timeout_seconds=-1), hasher, **PAYLOAD)

        assert _all_counts(session_factory) == (0, 0, 0)

    def test_hashing_failure_aborts_before_any_write(self, make_uow, session_factory):
        """Hashing failure propagates and nothing is written."""
        class BrokenHasher:
            def hash(self, secret):
                raise HashingError()

        with pytest.raises(HashingError):
            register_tenant(make_uow(), BrokenHasher(), **PAYLOAD)

        assert _all_counts(session_factory) == (0, 0, 0)


class TestSlugCollision:
    """A slug claimed between the existence check and the insert."""

    def test_stale_check_retries_with_next_suffix(self, make_uow, hasher, session_factory, monkeypatch):
        """An insert that collides on the slug retries with the next free suffix."""
        register_tenant(make_uow(), hasher, **PAYLOAD)

        real_exists = OrganizationRepository._slug_exists
        calls = []

        def stale_first_check(self, slug):
            calls.append(slug)
            if len(calls) == 1:
                return False  # misses the committed "acme"
            return real_exists(self, slug)

        monkeypatch.setattr(OrganizationRepository, "_slug_exists", stale_first_check)

        result = register_tenant(make_uow(), hasher, **{**PAYLOAD, "email": "b@x.com"})

        with session_factory() as session:
            assert session.get(Organization, result.org_id).slug == "acme-1"
        assert _all_counts(session_factory) == (2, 2, 2)

    def test_repeated_collisions_fall_back_to_random_suffix(
        self, make_uow, hasher, session_factory, monkeypatch
    ):
        """When every checked slug collides the last attempt uses a random suffix."""
        register_tenant(make_uow(), hasher, **PAYLOAD)
        monkeypatch.setattr(OrganizationRepository, "_slug_exists", lambda self, slug: False)

        result = register_tenant(make_uow(), hasher, **{**PAYLOAD, "email": "b@x.com"})

        with session_factory() as session:
            slug = session.get(Organization, result.org_id).slug
        assert re.fullmatch(r"acme-[0-9a-f]{8}", slug)
        assert _all_counts(session_factory) == (2, 2, 2)


class TestConcurrentRegistration:
    """Registrations racing on a file-backed database."""

    def test_same_email_one_success_one_duplicate(self, file_session_factory, hasher):
        """Exactly one of two simultaneous same-email registrations succeeds."""
        def attempt(org_name):
            return lambda: register_tenant(
                UnitOfWork(file_session_factory), hasher, **{**PAYLOAD, "org_name": org_name},
            )

        outcomes = _run_concurrently(attempt("Acme"), attempt("Other"))

        assert sum(isinstance(o, RegistrationResult) for o in outcomes) == 1
        assert sum(isinstance(o, DuplicateEmail) for o in outcomes) == 1
        assert _all_counts(file_session_factory) == (1, 1, 1)

    def test_different_emails_proceed_independently(self, file_session_factory, hasher):
        """Simultaneous registrations with different emails both succeed."""
        def attempt(email):
            return lambda: register_tenant(
                UnitOfWork(file_session_factory), hasher, **{**PAYLOAD, "email": email},
            )

        outcomes = _run_concurrently(attempt("a@x.com"), attempt("b@x.com"))

        assert all(isinstance(o, RegistrationResult) for o in outcomes), outcomes
        assert _all_counts(file_session_factory) == (2, 2, 2)
        with file_session_factory() as session:
            slugs = {org.slug for org in session.exec(select(Organization)).all()}
        assert slugs == {"acme", "acme-1"}


class TestSlugify:
    """Slug derivation from organization names."""

    @pytest.mark.parametrize("name,slug", [
        ("Acme", "acme"),
        ("Acme Health, Inc.", "acme-health-inc"),
        ("  --Zeta--  ", "zeta"),
        ("!!!", "org"),
        ("x" * 80, "x" * 50),
    ])
    def test_slugify(self, name, slug):
        """Names become lowercase, dash-separated, bounded slugs."""
        assert slugify(name) == slug
