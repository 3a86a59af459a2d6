# =============================================================================
# core/base_processor.py - Abstract CSV-driven bulk account processor
# =============================================================================

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
import logging

from core.models import (
    AccountKind, AccountRecord, OutcomeStatus, RemediationAction, RemediationOutcome, RunSummary
)
from core.ad_client import ActiveDirectoryClient
from utils.csv_utils import CSVHandler
from utils.export import OUTCOME_FIELDNAMES, outcome_to_dict


class BaseAccountProcessor(ABC):
    """Reads one account per CSV row, applies an action to it and writes one outcome per row"""

    IDENTIFIER_COLUMN = 'Identifier'
    ACTION: RemediationAction = RemediationAction.REPORT
    ACCOUNT_KIND: Optional[AccountKind] = AccountKind.USER

    def __init__(self, ad_client: ActiveDirectoryClient, dry_run: bool = True):
        self.ad_client = ad_client
        self.dry_run = dry_run
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def apply(self, row: Dict[str, Any], account: AccountRecord,
              outcome: RemediationOutcome) -> None:
        """Perform the action for one resolved account; raise to record a failure"""
        pass

    def get_required_columns(self) -> List[str]:
        return [self.IDENTIFIER_COLUMN]

    def get_output_fieldnames(self) -> List[str]:
        return list(OUTCOME_FIELDNAMES)

    def get_identifier(self, row: Dict[str, Any]) -> str:
        return (row.get(self.IDENTIFIER_COLUMN) or '').strip()

    def should_skip_row(self, row: Dict[str, Any]) -> bool:
        """Skip rows with an empty identifier"""
        return not self.get_identifier(row)

    def validate_headers(self, headers: List[str]) -> None:
        missing = [c for c in self.get_required_columns() if c not in headers]
        if missing:
            raise ValueError(f"Input CSV is missing required column(s): {', '.join(missing)}")

    def run(self, input_csv: str) -> List[RemediationOutcome]:
        """Read and validate the input CSV, then process every row; one outcome per row"""
        mode = "DRY RUN" if self.dry_run else "LIVE"
        self.logger.info(f"Starting {self.__class__.__name__} processing workflow ({mode})")

        try:
            csv_data, headers = CSVHandler.read_csv(input_csv)
            self.validate_headers(headers)
            return self.process_rows(csv_data)

        except Exception as e:
            self.logger.error(f"Processing failed: {e}")
            raise

    def summarize(self, outcomes: List[RemediationOutcome]) -> RunSummary:
        summary = RunSummary.from_outcomes(outcomes, matched=len(outcomes))
        self.log_statistics(summary)
        return summary

    def process(self, input_csv: str, output_csv: str) -> RunSummary:
        """Main processing workflow"""
        outcomes = self.run(input_csv)

        output_data = [outcome_to_dict(outcome) for outcome in outcomes]
        CSVHandler.write_csv(output_data, output_csv, self.get_output_fieldnames())

        return self.summarize(outcomes)

    def process_rows(self, csv_data: List[Dict[str, Any]]) -> List[RemediationOutcome]:
        return [self.process_single_row(row) for row in csv_data]

    def process_single_row(self, row: Dict[str, Any]) -> RemediationOutcome:
        """Resolve the row's account and apply the action, recording the result"""
        identifier = self.get_identifier(row)
        outcome = RemediationOutcome(identifier=identifier, action=self.ACTION)

        if self.should_skip_row(row):
            self.logger.warning("Skipping row with empty identifier")
            outcome.status = OutcomeStatus.SKIPPED
            outcome.detail = "empty identifier"
            return outcome

        outcome.status = OutcomeStatus.ATTEMPTING
        try:
            account = self.ad_client.find_account(identifier, self.ACCOUNT_KIND)
            if account is None:
                outcome.status = OutcomeStatus.FAILED
                outcome.detail = "not found in directory"
                return outcome

            self.apply(row, account, outcome)

        except Exception as e:
            self.logger.error(f"Error processing {identifier}: {e}")
            outcome.status = OutcomeStatus.FAILED
            outcome.detail = str(e)
            return outcome

        if outcome.status == OutcomeStatus.ATTEMPTING:
            outcome.status = OutcomeStatus.SUCCEEDED
        return outcome

    def log_statistics(self, summary: RunSummary) -> None:
        """Log processing statistics"""
        self.logger.info(summary.line())
        self.logger.info(f"Success rate: {summary.success_rate:.1f}% "
                         f"({summary.succeeded}/{summary.succeeded + summary.failed})")
