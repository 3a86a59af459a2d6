# =============================================================================
# processors/group_membership.py - Apply a template account's groups from CSV
# =============================================================================

from typing import List, Dict, Any, Optional, Tuple

from core.base_processor import BaseAccountProcessor
from core.models import AccountRecord, OutcomeStatus, RemediationAction, RemediationOutcome
from core.remediation import DRY_RUN_DETAIL


class GroupMembershipProcessor(BaseAccountProcessor):
    """Copies group membership from a template account onto each listed account.

    Groups the template has and the account lacks are added. With prune,
    groups the account has and the template lacks are removed as well.
    """

    ACTION = RemediationAction.SYNC_GROUPS
    ACCOUNT_KIND = None

    # Column mappings
    TEMPLATE_COLUMN = 'TemplateAccount'

    def __init__(self, ad_client, dry_run: bool = True, prune: bool = False):
        super().__init__(ad_client, dry_run=dry_run)
        self.prune = prune
        self.template_cache: Dict[str, Optional[AccountRecord]] = {}

    def get_required_columns(self) -> List[str]:
        return [self.IDENTIFIER_COLUMN, self.TEMPLATE_COLUMN]

    def get_output_fieldnames(self) -> List[str]:
        return super().get_output_fieldnames() + ['GroupsAdded', 'GroupsRemoved']

    def get_template(self, name: str) -> Optional[AccountRecord]:
        key = name.lower()
        if key not in self.template_cache:
            self.template_cache[key] = self.ad_client.find_account(name)
        return self.template_cache[key]

    def plan(self, account: AccountRecord, template: AccountRecord) -> Tuple[List[str], List[str]]:
        """Groups to add and remove so that account matches template"""
        current = {g.lower(): g for g in account.member_of}
        wanted = {g.lower(): g for g in template.member_of}

        to_add = [wanted[k] for k in wanted if k not in current]
        to_remove = [current[k] for k in current if k not in wanted] if self.prune else []
        return to_add, to_remove

    def apply(self, row: Dict[str, Any], account: AccountRecord,
              outcome: RemediationOutcome) -> None:
        template_name = (row.get(self.TEMPLATE_COLUMN) or '').strip()
        if not template_name:
            raise ValueError("no template account given")

        template = self.get_template(template_name)
        if template is None:
            raise LookupError(f"template account {template_name} not found")

        to_add, to_remove = self.plan(account, template)
        outcome.extra['GroupsAdded'] = ';'.join(to_add)
        outcome.extra['GroupsRemoved'] = ';'.join(to_remove)

        if not to_add and not to_remove:
            outcome.detail = "already in sync"
            return

        if self.dry_run:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.detail = f"{DRY_RUN_DETAIL}: would add {len(to_add)}, remove {len(to_remove)}"
            return

        self.ad_client.add_to_groups(account.distinguished_name, to_add)
        self.ad_client.remove_from_groups(account.distinguished_name, to_remove)
        outcome.detail = f"added {len(to_add)}, removed {len(to_remove)}"
