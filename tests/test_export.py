"""
Tests for CSV / pandas exports and console rendering.
"""

import csv
import json

import pytest

from core.exceptions import ExportPathInvalid
from core.inactivity import build_criterion, project_report
from core.models import AccountKind, OutcomeStatus, RemediationAction, RemediationOutcome
from utils.csv_utils import CSVHandler
from utils.export import OUTCOME_FIELDNAMES, REPORT_FIELDNAMES, ReportExporter


@pytest.fixture
def report_rows(now, account_factory):
    accounts = [account_factory("A", idle_days=100), account_factory("C", idle_days=None)]
    return project_report(accounts, build_criterion(AccountKind.USER, 90, now=now))


def read_rows(path):
    with open(path, newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        return reader.fieldnames, list(reader)


class TestCSVExport:
    """Report CSV"""

    def test_creates_missing_parent_directory(self, tmp_path, report_rows):
        output = tmp_path / "reports" / "2026" / "inactive.csv"

        ReportExporter().export(report_rows, str(output))

        assert output.exists()
        header, rows = read_rows(output)
        assert header == REPORT_FIELDNAMES
        assert [r['Identifier'] for r in rows] == ["A", "C"]
        assert rows[0]['IdleDays'] == "100"
        assert rows[1]['IdleDays'] == "never"
        assert rows[1]['LastActivity'] == ""
        assert rows[0]['AccountType'] == "User"

    def test_header_written_for_empty_report(self, tmp_path):
        output = tmp_path / "empty.csv"

        ReportExporter().export([], str(output))

        header, rows = read_rows(output)
        assert header == REPORT_FIELDNAMES
        assert rows == []

    def test_uncreatable_parent_raises(self, tmp_path, report_rows):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(ExportPathInvalid) as exc_info:
            ReportExporter().export(report_rows, str(blocker / "sub" / "report.csv"))

        assert "blocker" in exc_info.value.path

    def test_outcomes_with_extra_columns(self, tmp_path):
        outcomes = [
            RemediationOutcome("jdoe", RemediationAction.RESET_PASSWORD, OutcomeStatus.SUCCEEDED,
                               extra={'GeneratedPassword': 'x'}),
            RemediationOutcome("asmith", RemediationAction.RESET_PASSWORD, OutcomeStatus.FAILED, "boom"),
        ]
        output = tmp_path / "results.csv"

        ReportExporter().export(outcomes, str(output))

        header, rows = read_rows(output)
        assert header == OUTCOME_FIELDNAMES + ['GeneratedPassword']
        assert rows[0]['Status'] == "Succeeded"
        assert rows[1]['Detail'] == "boom"
        assert rows[1]['GeneratedPassword'] == ""

    def test_unknown_format_rejected(self, tmp_path, report_rows):
        with pytest.raises(ValueError, match="Unsupported export format"):
            ReportExporter().export(report_rows, str(tmp_path / "r.txt"), fmt='txt')


class TestOtherFormats:
    """pandas-backed exports"""

    def test_json(self, tmp_path, report_rows):
        output = tmp_path / "out" / "report.json"

        ReportExporter().export(report_rows, str(output), fmt='json')

        records = json.loads(output.read_text())
        assert [r['Identifier'] for r in records] == ["A", "C"]
        assert records[0]['IdleDays'] == 100
        assert records[1]['IdleDays'] == "never"

    def test_html(self, tmp_path, report_rows):
        output = tmp_path / "report.html"

        ReportExporter().export(report_rows, str(output), fmt='html')

        html = output.read_text()
        assert "<table" in html
        assert "Container" in html


class TestRenderTable:
    """Console rendering"""

    def test_lists_rows(self, report_rows):
        table = ReportExporter().render_table(report_rows)
        assert "Identifier" in table
        assert "never" in table
        assert "OU=Staff,DC=corp,DC=local" in table

    def test_empty(self):
        assert ReportExporter().render_table([]) == "No accounts matched."


class TestReadCSV:
    """CSV input"""

    def test_strips_bom_and_header_whitespace(self, tmp_path):
        source = tmp_path / "input.csv"
        source.write_text("\ufeffIdentifier , TemplateAccount\njdoe,template\n", encoding="utf-8")

        data, headers = CSVHandler.read_csv(str(source))

        assert headers == ["Identifier", "TemplateAccount"]
        assert data == [{"Identifier": "jdoe", "TemplateAccount": "template"}]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CSVHandler.read_csv(str(tmp_path / "missing.csv"))
