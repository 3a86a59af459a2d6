# =============================================================================
# processors/password_reset.py - Bulk password reset from CSV
# =============================================================================

import secrets
import string
from typing import List, Dict, Any

from core.base_processor import BaseAccountProcessor
from core.models import AccountRecord, OutcomeStatus, RemediationAction, RemediationOutcome
from core.remediation import DRY_RUN_DETAIL


SYMBOLS = "!@#$%^&*()-_=+"
PASSWORD_CHARS = string.ascii_letters + string.digits + SYMBOLS


def generate_password(length: int = 16) -> str:
    """Random password with at least one lower, upper, digit and symbol"""
    if length < 4:
        raise ValueError("Password length must be at least 4")
    while True:
        password = ''.join(secrets.choice(PASSWORD_CHARS) for _ in range(length))
        if (any(c.islower() for c in password) and any(c.isupper() for c in password)
                and any(c.isdigit() for c in password) and any(c in SYMBOLS for c in password)):
            return password


def parse_flag(value: str, default: bool = True) -> bool:
    value = (value or '').strip().lower()
    if not value:
        return default
    return value in ('1', 'true', 'yes', 'y')


class PasswordResetProcessor(BaseAccountProcessor):
    """Resets each listed user's password, generating one when the row has none"""

    ACTION = RemediationAction.RESET_PASSWORD

    # Column mappings
    PASSWORD_COLUMN = 'NewPassword'
    MUST_CHANGE_COLUMN = 'MustChange'
    GENERATED_COLUMN = 'GeneratedPassword'

    def __init__(self, ad_client, dry_run: bool = True, password_length: int = 16):
        super().__init__(ad_client, dry_run=dry_run)
        self.password_length = password_length

    def get_output_fieldnames(self) -> List[str]:
        return super().get_output_fieldnames() + [self.GENERATED_COLUMN]

    def apply(self, row: Dict[str, Any], account: AccountRecord,
              outcome: RemediationOutcome) -> None:
        password = (row.get(self.PASSWORD_COLUMN) or '').strip()
        must_change = parse_flag(row.get(self.MUST_CHANGE_COLUMN), default=True)

        if self.dry_run:
            outcome.status = OutcomeStatus.SKIPPED
            outcome.detail = DRY_RUN_DETAIL
            return

        generated = not password
        if generated:
            password = generate_password(self.password_length)

        self.ad_client.reset_password(account.distinguished_name, password, must_change)

        outcome.detail = "must change at next logon" if must_change else ""
        if generated:
            outcome.extra[self.GENERATED_COLUMN] = password
