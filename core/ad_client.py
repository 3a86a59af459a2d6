# =============================================================================
# core/ad_client.py - Active Directory session and account operations
# =============================================================================

import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Iterable, List, Optional

from ldap3 import Server, Connection, ALL, BASE, SUBTREE, MODIFY_REPLACE
from ldap3.core.exceptions import (
    LDAPException, LDAPBindError, LDAPSocketOpenError,
    LDAPSocketReceiveError, LDAPResponseTimeoutError
)
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import to_dn

from core.exceptions import (
    DirectoryError, DirectoryUnavailable, DirectoryTimeout, PerAccountMutationFailed
)
from core.models import AccountKind, AccountRecord


ACCOUNTDISABLE = 0x2
DISABLED_BIT_RULE = "(userAccountControl:1.2.840.113556.1.4.803:=2)"

# FILETIME counts 100ns intervals since 1601-01-01 UTC
FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
FILETIME_NEVER = 0x7FFFFFFFFFFFFFFF

ACCOUNT_FILTERS = {
    AccountKind.USER: "(&(objectCategory=person)(objectClass=user))",
    AccountKind.COMPUTER: "(objectClass=computer)",
}

CONTAINER_CLASSES = {"organizationalunit", "container", "builtindomain"}

ACCOUNT_ATTRIBUTES = [
    'sAMAccountName', 'name', 'objectClass', 'lastLogonTimestamp',
    'whenCreated', 'userAccountControl', 'memberOf'
]


def filetime_to_datetime(value: Any) -> Optional[datetime]:
    """Normalize an AD timestamp (FILETIME int, datetime or GeneralizedTime) to UTC.

    Zero, the 1601 epoch and the "never" sentinel all mean no timestamp.
    """
    value = _first(value)
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value).strip()
        try:
            ticks = int(text)
        except ValueError:
            moment = datetime.strptime(text[:14], "%Y%m%d%H%M%S")
        else:
            if ticks <= 0 or ticks >= FILETIME_NEVER:
                return None
            try:
                moment = FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
            except OverflowError:
                return None

    if moment.year <= 1601 or moment.year >= 9999:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parent_dn(dn: str) -> str:
    """Container DN holding the given object"""
    return ",".join(to_dn(dn)[1:])


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


class ActiveDirectoryClient:
    """Single Active Directory session shared by every component of a run"""

    def __init__(self, server_url: str, username: str, password: str, base_dn: str,
                 use_ssl: bool = True, timeout: int = 30, page_size: int = 500):
        self.server_url = server_url
        self.username = username
        self.password = password
        self.base_dn = base_dn
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.page_size = page_size
        self.connection: Optional[Connection] = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        """Context manager entry"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.disconnect()

    def connect(self) -> None:
        """Establish connection to Active Directory, raising DirectoryUnavailable on failure"""
        try:
            server = Server(self.server_url, use_ssl=self.use_ssl, get_info=ALL,
                            connect_timeout=self.timeout)
            self.connection = Connection(
                server,
                user=self.username,
                password=self.password,
                auto_bind=True,
                receive_timeout=self.timeout
            )
        except LDAPBindError as e:
            self.logger.error(f"Bind to {self.server_url} rejected: {e}")
            raise DirectoryUnavailable(f"Bind to {self.server_url} rejected: {e}") from e
        except LDAPException as e:
            self.logger.error(f"Failed to connect to AD: {e}")
            raise self._translate(e, f"connect to {self.server_url}") from e

        self.logger.info(f"Successfully connected to Active Directory at {self.server_url}")

    def disconnect(self) -> None:
        """Close Active Directory connection"""
        if self.connection:
            self.connection.unbind()
            self.connection = None
            self.logger.info("Disconnected from Active Directory")

    def _require_connection(self) -> Connection:
        if not self.connection:
            raise DirectoryUnavailable("Not connected to Active Directory")
        return self.connection

    def _translate(self, error: LDAPException, action: str) -> DirectoryUnavailable:
        """Map ldap3 transport errors onto the directory error taxonomy"""
        if isinstance(error, (LDAPSocketReceiveError, LDAPResponseTimeoutError)) \
                or "timed out" in str(error).lower():
            return DirectoryTimeout(f"Timed out after {self.timeout}s trying to {action}")
        if isinstance(error, LDAPSocketOpenError):
            return DirectoryUnavailable(f"Cannot reach {self.server_url}: {error}")
        return DirectoryUnavailable(f"Failed to {action}: {error}")

    def _result_description(self) -> str:
        result = self.connection.result if self.connection else None
        if not result:
            return "unknown error"
        return result.get('message') or result.get('description') or "unknown error"

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_accounts(self, scope: Optional[str] = None,
                      kind: AccountKind = AccountKind.USER) -> List[AccountRecord]:
        """All accounts of the given kind below scope (defaults to the base DN)"""
        search_base = scope or self.base_dn
        entries = self._paged_search(search_base, ACCOUNT_FILTERS[kind], ACCOUNT_ATTRIBUTES)

        accounts = [self._entry_to_account(entry, kind) for entry in entries]
        self.logger.info(f"Found {len(accounts)} {kind.value.lower()} accounts under {search_base}")
        return accounts

    def find_account(self, identifier: str,
                     kind: Optional[AccountKind] = None) -> Optional[AccountRecord]:
        """Look up one account by sAMAccountName (computers also match NAME$)"""
        conn = self._require_connection()
        name = escape_filter_chars(identifier.strip())
        search_filter = f"(|(sAMAccountName={name})(sAMAccountName={name}$))"
        if kind is not None:
            search_filter = f"(&{ACCOUNT_FILTERS[kind]}{search_filter})"
        else:
            # groups carry sAMAccountName too
            any_account = f"(|{ACCOUNT_FILTERS[AccountKind.USER]}{ACCOUNT_FILTERS[AccountKind.COMPUTER]})"
            search_filter = f"(&{any_account}{search_filter})"

        try:
            conn.search(
                search_base=self.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=ACCOUNT_ATTRIBUTES
            )
        except LDAPException as e:
            raise self._translate(e, f"look up {identifier}") from e

        entries = [e for e in (conn.response or []) if e.get('type') == 'searchResEntry']
        if not entries:
            self.logger.debug(f"Account {identifier} not found in AD")
            return None
        if len(entries) > 1:
            self.logger.warning(f"Multiple accounts found for {identifier}, using first match")

        return self._entry_to_account(entries[0], kind or AccountKind.USER)

    def container_exists(self, dn: str) -> bool:
        """True when dn names an OU or container that accounts can be moved into"""
        conn = self._require_connection()
        try:
            found = conn.search(
                search_base=dn,
                search_filter="(objectClass=*)",
                search_scope=BASE,
                attributes=['objectClass']
            )
        except LDAPException as e:
            raise self._translate(e, f"read container {dn}") from e

        if not found or not conn.entries:
            self.logger.debug(f"Container {dn} not found: {self._result_description()}")
            return False

        classes = {str(c).lower() for c in conn.entries[0].objectClass.values}
        return bool(classes & CONTAINER_CLASSES)

    def directory_stats(self) -> Dict[str, int]:
        """Object counts for a quick health overview of the directory"""
        user_filter = ACCOUNT_FILTERS[AccountKind.USER]
        computer_filter = ACCOUNT_FILTERS[AccountKind.COMPUTER]
        queries = OrderedDict([
            ("OUs", "(objectClass=organizationalUnit)"),
            ("Enabled users", f"(&{user_filter}(!{DISABLED_BIT_RULE}))"),
            ("Disabled users", f"(&{user_filter}{DISABLED_BIT_RULE})"),
            ("Enabled computers", f"(&{computer_filter}(!{DISABLED_BIT_RULE}))"),
            ("Disabled computers", f"(&{computer_filter}{DISABLED_BIT_RULE})"),
        ])

        stats = OrderedDict()
        for label, search_filter in queries.items():
            stats[label] = sum(1 for _ in self._paged_search(self.base_dn, search_filter, ['cn']))
            self.logger.debug(f"{label}: {stats[label]}")
        return stats

    def _paged_search(self, search_base: str, search_filter: str,
                      attributes: List[str]) -> List[Dict[str, Any]]:
        conn = self._require_connection()
        try:
            entries = [
                entry for entry in conn.extend.standard.paged_search(
                    search_base=search_base,
                    search_filter=search_filter,
                    search_scope=SUBTREE,
                    attributes=attributes,
                    paged_size=self.page_size,
                    generator=True
                )
                if entry.get('type') == 'searchResEntry'
            ]
        except LDAPException as e:
            raise self._translate(e, f"search {search_base}") from e

        result = conn.result or {}
        if result.get('result', 0) != 0:
            raise DirectoryError(f"Search under {search_base} failed: {self._result_description()}")
        return entries

    def _entry_to_account(self, entry: Dict[str, Any], kind: AccountKind) -> AccountRecord:
        dn = entry['dn']
        attrs = entry.get('attributes', {})

        object_classes = {c.lower() for c in _as_list(attrs.get('objectClass'))}
        if 'computer' in object_classes:
            kind = AccountKind.COMPUTER
        elif object_classes:
            kind = AccountKind.USER

        sam = str(_first(attrs.get('sAMAccountName')) or "")
        if kind == AccountKind.COMPUTER:
            identifier = str(_first(attrs.get('name')) or sam.rstrip('$'))
        else:
            identifier = sam or str(_first(attrs.get('name')) or dn)

        uac = _first(attrs.get('userAccountControl')) or 0
        return AccountRecord(
            identifier=identifier,
            kind=kind,
            distinguished_name=dn,
            container=parent_dn(dn),
            last_activity=filetime_to_datetime(attrs.get('lastLogonTimestamp')),
            created_at=filetime_to_datetime(attrs.get('whenCreated')),
            enabled=not bool(int(uac) & ACCOUNTDISABLE),
            member_of=_as_list(attrs.get('memberOf'))
        )

    # -------------------------------------------------------------------------
    # Mutations - each raises PerAccountMutationFailed for the single account
    # -------------------------------------------------------------------------

    def disable_account(self, dn: str) -> bool:
        """Set ACCOUNTDISABLE; returns False when the account was already disabled"""
        conn = self._require_connection()
        try:
            found = conn.search(dn, "(objectClass=*)", search_scope=BASE,
                                attributes=['userAccountControl'])
            if not found or not conn.entries:
                raise PerAccountMutationFailed(dn, self._result_description())

            uac = int(conn.entries[0].userAccountControl.value or 0)
            if uac & ACCOUNTDISABLE:
                self.logger.debug(f"{dn} is already disabled")
                return False

            if not conn.modify(dn, {'userAccountControl': [(MODIFY_REPLACE, [uac | ACCOUNTDISABLE])]}):
                raise PerAccountMutationFailed(dn, self._result_description())
        except LDAPException as e:
            raise PerAccountMutationFailed(dn, str(e)) from e

        self.logger.info(f"Disabled {dn}")
        return True

    def move_account(self, dn: str, target_container: str) -> bool:
        """Relocate an account; returns False when it already lives in the target"""
        conn = self._require_connection()
        if parent_dn(dn).lower() == target_container.lower():
            self.logger.debug(f"{dn} is already in {target_container}")
            return False

        try:
            if not conn.modify_dn(dn, to_dn(dn)[0], new_superior=target_container):
                raise PerAccountMutationFailed(dn, self._result_description())
        except LDAPException as e:
            raise PerAccountMutationFailed(dn, str(e)) from e

        self.logger.info(f"Moved {dn} to {target_container}")
        return True

    def reset_password(self, dn: str, new_password: str, must_change: bool = True) -> None:
        """Set a new password (needs an LDAPS session) and optionally expire it"""
        conn = self._require_connection()
        try:
            if not conn.extend.microsoft.modify_password(dn, new_password):
                raise PerAccountMutationFailed(dn, self._result_description())
            if must_change and not conn.modify(dn, {'pwdLastSet': [(MODIFY_REPLACE, [0])]}):
                raise PerAccountMutationFailed(
                    dn, f"password set but could not force change: {self._result_description()}")
        except LDAPException as e:
            raise PerAccountMutationFailed(dn, str(e)) from e

        self.logger.info(f"Password reset for {dn}")

    def add_to_groups(self, dn: str, groups: Iterable[str]) -> None:
        """Add the account to every group DN given"""
        groups = list(groups)
        if not groups:
            return
        conn = self._require_connection()
        try:
            if not conn.extend.microsoft.add_members_to_groups([dn], groups, fix=True):
                raise PerAccountMutationFailed(dn, self._result_description())
        except LDAPException as e:
            raise PerAccountMutationFailed(dn, str(e)) from e

        self.logger.info(f"Added {dn} to {len(groups)} group(s)")

    def remove_from_groups(self, dn: str, groups: Iterable[str]) -> None:
        """Remove the account from every group DN given"""
        groups = list(groups)
        if not groups:
            return
        conn = self._require_connection()
        try:
            if not conn.extend.microsoft.remove_members_from_groups([dn], groups, fix=True):
                raise PerAccountMutationFailed(dn, self._result_description())
        except LDAPException as e:
            raise PerAccountMutationFailed(dn, str(e)) from e

        self.logger.info(f"Removed {dn} from {len(groups)} group(s)")
