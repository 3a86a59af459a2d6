# =============================================================================
# core/inactivity.py - Inactivity filter and report projection
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from core.models import AccountKind, AccountRecord, InactivityCriterion, ReportRow, NEVER


logger = logging.getLogger(__name__)


def build_criterion(kind: AccountKind, threshold_days: int, scope: Optional[str] = None,
                    now: Optional[datetime] = None) -> InactivityCriterion:
    """Build the run's criterion; every comparison afterwards uses the same 'now'"""
    if threshold_days < 0:
        raise ValueError(f"Inactivity threshold must be zero or more days, got {threshold_days}")
    return InactivityCriterion(
        kind=kind,
        threshold_days=threshold_days,
        now=now or datetime.now(timezone.utc),
        scope=scope or None
    )


def in_scope(container: str, scope: Optional[str]) -> bool:
    """True if container is scope itself or anywhere below it"""
    if not scope:
        return True
    container = _normalize_dn(container)
    scope = _normalize_dn(scope)
    return container == scope or container.endswith("," + scope)


def _normalize_dn(dn: str) -> str:
    return ",".join(part.strip() for part in dn.lower().split(","))


def is_inactive(account: AccountRecord, criterion: InactivityCriterion) -> bool:
    """Never-active accounts always count as inactive"""
    if account.last_activity is None:
        return True
    return account.last_activity < criterion.cutoff


def filter_inactive(accounts: Iterable[AccountRecord],
                    criterion: InactivityCriterion) -> List[AccountRecord]:
    """Accounts of the criterion's kind and scope whose last activity is before the cutoff"""
    matched = [
        account for account in accounts
        if account.kind == criterion.kind
        and in_scope(account.container, criterion.scope)
        and is_inactive(account, criterion)
    ]
    logger.info(f"{len(matched)} {criterion.kind.value.lower()} accounts inactive since "
                f"{criterion.cutoff:%Y-%m-%d} ({criterion.threshold_days} days)")
    return matched


def idle_days(account: AccountRecord, now: datetime):
    if account.last_activity is None:
        return NEVER
    return (now - account.last_activity).days


def project_report(accounts: Iterable[AccountRecord],
                   criterion: InactivityCriterion) -> List[ReportRow]:
    """Flatten matched accounts into report rows"""
    return [
        ReportRow(
            account_type=account.kind.value,
            identifier=account.identifier,
            last_activity=account.last_activity,
            idle_days=idle_days(account, criterion.now),
            created_at=account.created_at,
            container=account.container
        )
        for account in accounts
    ]
