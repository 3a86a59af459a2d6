# =============================================================================
# utils/export.py - Report and outcome rendering / export
# =============================================================================

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from core.exceptions import ExportPathInvalid
from core.models import ReportRow, RemediationOutcome
from utils.csv_utils import CSVHandler, ensure_parent_dir


REPORT_FIELDNAMES = ['AccountType', 'Identifier', 'LastActivity', 'IdleDays', 'CreatedAt', 'Container']
OUTCOME_FIELDNAMES = ['Identifier', 'Action', 'Status', 'Detail']

EXPORT_FORMATS = ('csv', 'json', 'html', 'xlsx')


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def report_row_to_dict(row: ReportRow) -> Dict[str, Any]:
    return {
        'AccountType': row.account_type,
        'Identifier': row.identifier,
        'LastActivity': format_timestamp(row.last_activity),
        'IdleDays': row.idle_days,
        'CreatedAt': format_timestamp(row.created_at),
        'Container': row.container
    }


def outcome_to_dict(outcome: RemediationOutcome) -> Dict[str, Any]:
    result = {
        'Identifier': outcome.identifier,
        'Action': outcome.action.value,
        'Status': outcome.status.value,
        'Detail': outcome.detail
    }
    result.update(outcome.extra)
    return result


class ReportExporter:
    """Console tables and file exports for report rows and remediation outcomes"""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def to_records(rows: Sequence[Any]) -> List[Dict[str, Any]]:
        return [
            outcome_to_dict(row) if isinstance(row, RemediationOutcome) else report_row_to_dict(row)
            for row in rows
        ]

    @staticmethod
    def fieldnames_for(rows: Sequence[Any]) -> List[str]:
        if rows and isinstance(rows[0], RemediationOutcome):
            extra = []
            for row in rows:
                extra.extend(k for k in row.extra if k not in extra)
            return OUTCOME_FIELDNAMES + extra
        return REPORT_FIELDNAMES

    def render_table(self, rows: Sequence[Any], fieldnames: Optional[List[str]] = None) -> str:
        """Human-readable table of report rows or outcomes"""
        if not rows:
            return "No accounts matched."
        frame = pd.DataFrame(self.to_records(rows), columns=fieldnames or self.fieldnames_for(rows))
        return frame.to_string(index=False)

    def export(self, rows: Sequence[Any], output_path: str, fmt: str = 'csv',
               fieldnames: Optional[List[str]] = None) -> str:
        """Write rows to output_path in the requested format; returns the path written"""
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")

        fieldnames = fieldnames or self.fieldnames_for(rows)
        records = self.to_records(rows)

        if fmt == 'csv':
            CSVHandler.write_csv(records, output_path, fieldnames)
            return output_path

        path = ensure_parent_dir(output_path)
        frame = pd.DataFrame(records, columns=fieldnames)
        try:
            if fmt == 'json':
                frame.to_json(path, orient='records', indent=2)
            elif fmt == 'html':
                frame.to_html(path, index=False, na_rep="")
            elif fmt == 'xlsx':
                frame.to_excel(path, index=False, engine='openpyxl')
        except OSError as e:
            self.logger.error(f"Error writing {fmt.upper()}: {e}")
            raise ExportPathInvalid(output_path, str(e)) from e

        self.logger.info(f"Successfully wrote {len(records)} records to {output_path}")
        return output_path
