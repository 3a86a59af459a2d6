"""
Shared fixtures: an in-memory directory standing in for ActiveDirectoryClient.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import PerAccountMutationFailed
from core.models import AccountKind, AccountRecord


NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
STAFF_OU = "OU=Staff,DC=corp,DC=local"


class FakeDirectory:
    """Records every call and mutates its own account records"""

    def __init__(self, accounts=(), containers=(), failing=()):
        self.accounts = list(accounts)
        self.containers = {c.lower() for c in containers}
        self.failing = set(failing)
        self.calls = []
        self.passwords = {}
        self.stats = {"OUs": 3, "Enabled users": 10, "Disabled users": 2,
                      "Enabled computers": 5, "Disabled computers": 1}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def _by_dn(self, dn):
        for account in self.accounts:
            if account.distinguished_name == dn:
                return account
        raise PerAccountMutationFailed(dn, "no such object")

    def _check(self, dn):
        if dn in self.failing:
            raise PerAccountMutationFailed(dn, "insufficient access rights")

    def list_accounts(self, scope=None, kind=AccountKind.USER):
        self.calls.append(("list_accounts", scope, kind))
        return [a for a in self.accounts if a.kind == kind]

    def find_account(self, identifier, kind=None):
        self.calls.append(("find_account", identifier))
        for account in self.accounts:
            if account.identifier.lower() == identifier.lower():
                if kind is None or account.kind == kind:
                    return account
        return None

    def container_exists(self, dn):
        self.calls.append(("container_exists", dn))
        return dn.lower() in self.containers

    def disable_account(self, dn):
        self.calls.append(("disable", dn))
        self._check(dn)
        account = self._by_dn(dn)
        if not account.enabled:
            return False
        account.enabled = False
        return True

    def move_account(self, dn, target_container):
        self.calls.append(("move", dn, target_container))
        self._check(dn)
        account = self._by_dn(dn)
        if account.container.lower() == target_container.lower():
            return False
        rdn = dn.split(",", 1)[0]
        account.container = target_container
        account.distinguished_name = f"{rdn},{target_container}"
        return True

    def reset_password(self, dn, new_password, must_change=True):
        self.calls.append(("reset_password", dn, must_change))
        self._check(dn)
        self.passwords[dn] = new_password

    def add_to_groups(self, dn, groups):
        groups = list(groups)
        self.calls.append(("add_to_groups", dn, groups))
        self._check(dn)
        self._by_dn(dn).member_of.extend(groups)

    def remove_from_groups(self, dn, groups):
        groups = list(groups)
        self.calls.append(("remove_from_groups", dn, groups))
        self._check(dn)
        account = self._by_dn(dn)
        account.member_of = [g for g in account.member_of if g not in groups]

    def directory_stats(self):
        return dict(self.stats)

    def mutations(self):
        return [c for c in self.calls
                if c[0] in ("disable", "move", "reset_password", "add_to_groups", "remove_from_groups")]


def make_account(identifier, idle_days=None, kind=AccountKind.USER, container=STAFF_OU,
                 enabled=True, member_of=None, now=NOW):
    last_activity = None if idle_days is None else now - timedelta(days=idle_days)
    return AccountRecord(
        identifier=identifier,
        kind=kind,
        distinguished_name=f"CN={identifier},{container}",
        container=container,
        last_activity=last_activity,
        created_at=now - timedelta(days=1000),
        enabled=enabled,
        member_of=list(member_of or [])
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def account_factory():
    return make_account


@pytest.fixture
def fake_directory():
    return FakeDirectory
