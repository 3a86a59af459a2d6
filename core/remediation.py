# =============================================================================
# core/remediation.py - Bulk remediation of inactive accounts
# =============================================================================

import logging
import re
from typing import List, Optional

from core.ad_client import ActiveDirectoryClient
from core.exceptions import InvalidTargetContainer
from core.models import (
    AccountRecord, OutcomeStatus, RemediationAction, RemediationOutcome, RunSummary
)


DRY_RUN_DETAIL = "dry run"


class ExclusionPolicy:
    """Accounts that must never be touched, even when inactive"""

    def __init__(self, name_prefix: str = "", bypass_group_pattern: str = ""):
        self.name_prefix = name_prefix or ""
        self.bypass_group = re.compile(bypass_group_pattern, re.IGNORECASE) if bypass_group_pattern else None

    def reason_for(self, account: AccountRecord) -> Optional[str]:
        """Why the account is excluded, or None"""
        if self.name_prefix and account.identifier.lower().startswith(self.name_prefix.lower()):
            return f"excluded: name starts with '{self.name_prefix}'"
        if self.bypass_group:
            for group in account.member_of:
                if self.bypass_group.search(group):
                    return f"excluded: member of {group}"
        return None


class RemediationExecutor:
    """Applies one action to each matched account, one account at a time.

    A failing account is recorded and the batch carries on. An invalid move
    target stops the whole run before anything is changed.
    """

    def __init__(self, ad_client: ActiveDirectoryClient, action: RemediationAction,
                 target_container: Optional[str] = None, dry_run: bool = True,
                 exclusions: Optional[ExclusionPolicy] = None):
        if action not in (RemediationAction.REPORT, RemediationAction.DISABLE, RemediationAction.MOVE):
            raise ValueError(f"Unsupported remediation action: {action.value}")
        self.ad_client = ad_client
        self.action = action
        self.target_container = target_container
        self.dry_run = dry_run
        self.exclusions = exclusions or ExclusionPolicy()
        self.validated = False
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate(self) -> None:
        """Fail fast on a missing or invalid move target"""
        if self.action != RemediationAction.MOVE:
            return
        if not self.target_container:
            raise InvalidTargetContainer("", "was not given")
        if not self.ad_client.container_exists(self.target_container):
            raise InvalidTargetContainer(self.target_container)
        self.logger.info(f"Target container {self.target_container} validated")
        self.validated = True

    def execute(self, accounts: List[AccountRecord]) -> List[RemediationOutcome]:
        """Run the action over every account; returns one outcome per account"""
        if self.action == RemediationAction.REPORT:
            return []

        if not self.validated:
            self.validate()

        mode = "DRY RUN" if self.dry_run else "LIVE"
        self.logger.info(f"Starting {self.action.value} of {len(accounts)} accounts ({mode})")

        outcomes = []
        for index, account in enumerate(accounts, start=1):
            outcome = self.process_account(account)
            self.logger.debug(f"[{index}/{len(accounts)}] {account.identifier}: "
                              f"{outcome.status.value} {outcome.detail}".rstrip())
            outcomes.append(outcome)

        self.log_statistics(RunSummary.from_outcomes(outcomes))
        return outcomes

    def process_account(self, account: AccountRecord) -> RemediationOutcome:
        outcome = RemediationOutcome(identifier=account.identifier, action=self.action)

        reason = self.exclusions.reason_for(account)
        if reason:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.detail = reason
            return outcome

        if self.dry_run:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.detail = DRY_RUN_DETAIL
            return outcome

        outcome.status = OutcomeStatus.ATTEMPTING
        try:
            if self.action == RemediationAction.DISABLE:
                changed = self.ad_client.disable_account(account.distinguished_name)
                outcome.detail = "" if changed else "already disabled"
            else:
                changed = self.ad_client.move_account(account.distinguished_name, self.target_container)
                outcome.detail = f"moved to {self.target_container}" if changed else "already in target"
        except Exception as e:
            self.logger.error(f"Failed to {self.action.value} {account.identifier}: {e}")
            outcome.status = OutcomeStatus.FAILED
            outcome.detail = str(e)
            return outcome

        outcome.status = OutcomeStatus.SUCCEEDED
        return outcome

    def log_statistics(self, summary: RunSummary) -> None:
        self.logger.info(f"{self.action.value}: {summary.succeeded} succeeded, "
                         f"{summary.failed} failed, {summary.skipped} skipped")
