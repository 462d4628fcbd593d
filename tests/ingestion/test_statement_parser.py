"""
Bank export parsing: CSV, OFX/QFX and XLSX.

Verifies:
- Header auto-detection for signed and split debit/credit layouts
- Unreadable rows become warnings, never exceptions
- Parsed lines import into a statement unchanged
"""

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest

from ledger_ingestion import ColumnMapping, adapter_for, detect_column_mapping, parse_statement
from ledger_ingestion.adapters import CsvStatementAdapter, OfxStatementAdapter, XlsxStatementAdapter
from ledger_ingestion.domain import parse_amount, parse_date, parse_ofx_date

SIGNED_CSV = """Date,Description,Amount,Reference
03/05/2026,CHECK 1234,-150.00,CHK1234
03/12/2026,DEPOSIT,500.00,
2026-03-31,MONTHLY SERVICE FEE,(42.17),
"""

SPLIT_CSV = """Posting Date,Description,Debit Amount,Credit Amount,Check Number,Balance
03/05/2026,CHECK 1234,150.00,,1234,850.00
03/12/2026,DEPOSIT,,"1,500.00",,"2,350.00"
"""

OFX = """OFXHEADER:100
DATA:OFXSGML
<OFX><BANKMSGSRSV1><STMTTRNRS><STMTRS><BANKTRANLIST>
<STMTTRN>
<TRNTYPE>CHECK
<DTPOSTED>20260305120000.000[-5:EST]
<TRNAMT>-150.00
<FITID>2026030501
<CHECKNUM>1234
<NAME>CHECK 1234
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20260312
<TRNAMT>500.00
<FITID>2026031201
<MEMO>Mobile deposit
</STMTTRN>
<STMTTRN>
<TRNTYPE>FEE
<TRNAMT>-42.17
<FITID>2026033101
</STMTTRN>
</BANKTRANLIST></STMTRS></STMTTRNRS></BANKMSGSRSV1></OFX>
"""


def _workbook_bytes(rows):
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class TestColumnDetection:
    """Header keywords map to column indexes."""

    def test_signed_amount_layout(self):
        mapping = detect_column_mapping(["Date", "Description", "Amount", "Reference"])

        assert (mapping.date, mapping.description, mapping.amount, mapping.reference) == (0, 1, 2, 3)
        assert mapping.debit is None

    def test_debit_amount_headers_are_split_columns(self):
        mapping = detect_column_mapping(
            ["Posting Date", "Description", "Debit Amount", "Credit Amount", "Check Number", "Balance"]
        )

        assert mapping.amount is None
        assert (mapping.debit, mapping.credit) == (2, 3)
        assert mapping.reference == 4
        assert mapping.balance == 5

    def test_no_amount_columns(self):
        assert detect_column_mapping(["Date", "Description", "Notes"]) is None

    def test_mapping_needs_amount_columns(self):
        with pytest.raises(ValueError):
            ColumnMapping(date=0, description=1, debit=2)


class TestCsv:
    """Delimited exports."""

    def test_signed_amounts(self):
        result = parse_statement(SIGNED_CSV, "march.csv")

        assert result.warnings == ()
        assert [line.amount for line in result.lines] == [
            Decimal("-150.00"),
            Decimal("500.00"),
            Decimal("-42.17"),
        ]
        assert result.lines[0].reference_number == "CHK1234"
        assert result.lines[1].reference_number is None
        assert result.lines[2].transaction_date == date(2026, 3, 31)
        assert result.total_amount == Decimal("307.83")

    def test_debit_credit_columns(self):
        result = parse_statement(SPLIT_CSV, "march.csv")

        assert [line.amount for line in result.lines] == [Decimal("-150.00"), Decimal("1500.00")]
        assert result.lines[0].reference_number == "1234"

    def test_bom_is_stripped(self):
        result = parse_statement(("\ufeff" + SIGNED_CSV).encode("utf-8"), "march.csv")

        assert result.mapping.date == 0
        assert len(result.lines) == 3

    def test_bad_rows_become_warnings(self):
        content = (
            "Date,Description,Amount\n"
            "13/45/2026,BAD DATE,1.00\n"
            "03/02/2026,,2.00\n"
            "03/03/2026,BAD AMOUNT,abc\n"
            "\n"
            "03/04/2026,GOOD,4.00\n"
        )

        result = parse_statement(content, "march.csv")

        assert [line.description for line in result.lines] == ["GOOD"]
        assert result.warnings == (
            'Row 2: invalid date "13/45/2026"',
            "Row 3: empty description",
            'Row 4: invalid amount "abc"',
        )

    def test_empty_file(self):
        assert parse_statement("", "empty.csv").warnings == ("Empty file",)

    def test_unrecognized_header(self):
        result = parse_statement("Foo,Bar\n1,2\n", "odd.csv")

        assert result.lines == ()
        assert result.warnings == ("Could not auto-detect column mapping from header row",)

    def test_explicit_mapping_without_header(self):
        mapping = ColumnMapping(date=1, description=0, amount=2, has_header=False)

        result = CsvStatementAdapter(delimiter=";").parse("Payroll;2026-03-15;-2000\n", mapping)

        assert result.lines[0].transaction_date == date(2026, 3, 15)
        assert result.lines[0].amount == Decimal("-2000")


class TestOfx:
    """SGML OFX/QFX downloads."""

    def test_transactions(self):
        result = parse_statement(OFX, "march.qfx")

        assert len(result.lines) == 2
        check, deposit = result.lines
        assert check.transaction_date == date(2026, 3, 5)
        assert check.reference_number == "1234"
        assert check.category == "CHECK"
        assert deposit.description == "Mobile deposit"
        assert deposit.reference_number == "2026031201"
        assert result.warnings == ("Transaction missing DTPOSTED",)

    def test_no_transactions(self):
        result = OfxStatementAdapter().parse("<OFX></OFX>")

        assert result.warnings == ("No transactions found in OFX file",)


class TestXlsx:
    """Spreadsheet exports read through openpyxl."""

    def test_title_rows_skipped(self):
        content = _workbook_bytes(
            [
                ["Helping Hands Food Bank"],
                ["Account ending 4321"],
                ["Date", "Description", "Amount"],
                [datetime(2026, 3, 5), "CHECK 1234", -150.0],
                [datetime(2026, 3, 12), "DEPOSIT", 500],
            ]
        )

        result = parse_statement(content, "march.xlsx")

        assert result.warnings == ()
        assert [line.transaction_date for line in result.lines] == [date(2026, 3, 5), date(2026, 3, 12)]
        assert [line.amount for line in result.lines] == [Decimal("-150.0"), Decimal("500")]

    def test_sheet_by_name(self):
        wb = openpyxl.Workbook()
        wb.active.title = "Summary"
        detail = wb.create_sheet("Detail")
        detail.append(["Transaction Date", "Memo", "Withdrawals", "Deposits"])
        detail.append(["03/20/2026", "Utilities", 80.25, None])
        buffer = BytesIO()
        wb.save(buffer)

        result = XlsxStatementAdapter(sheet="Detail").parse(buffer.getvalue())

        assert result.lines[0].amount == Decimal("-80.25")
        assert result.lines[0].description == "Utilities"


class TestValueParsers:
    """Dates and amounts as banks print them."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("03/05/2026", date(2026, 3, 5)),
            ("3-5-2026", date(2026, 3, 5)),
            ("2026/03/05", date(2026, 3, 5)),
            ("2026-03-05T10:30:00", date(2026, 3, 5)),
            ("", None),
            ("next tuesday", None),
        ],
    )
    def test_parse_date(self, raw, expected):
        assert parse_date(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$1,234.56", Decimal("1234.56")),
            ("(45.00)", Decimal("-45.00")),
            ("-0.5", Decimal("-0.5")),
            (12.1, Decimal("12.1")),
            ("", None),
            ("n/a", None),
            ("NaN", None),
        ],
    )
    def test_parse_amount(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_parse_ofx_date(self):
        assert parse_ofx_date("20260229") is None
        assert parse_ofx_date("20260301093000[-5:EST]") == date(2026, 3, 1)
        assert parse_ofx_date("2026") is None


class TestAdapterSelection:
    """File extension picks the reader."""

    @pytest.mark.parametrize(
        "file_name, adapter_type",
        [
            ("march.OFX", OfxStatementAdapter),
            ("march.qfx", OfxStatementAdapter),
            ("march.xlsx", XlsxStatementAdapter),
            ("march.csv", CsvStatementAdapter),
            ("march.txt", CsvStatementAdapter),
        ],
    )
    def test_adapter_for(self, file_name, adapter_type):
        assert isinstance(adapter_for(file_name), adapter_type)

    def test_parse_is_logged(self, captured_logs):
        parse_statement(SIGNED_CSV, "march.csv")

        (record,) = [r for r in captured_logs() if r["message"] == "statement_parsed"]
        assert record["adapter"] == "CsvStatementAdapter"
        assert record["line_count"] == 3


class TestImportParsedLines:
    """Parsed lines are accepted by the statement import as they are."""

    def test_import(self, reconciliation_service, organization, accounts, test_actor_id):
        bank_account = reconciliation_service.create_bank_account(
            organization.id, accounts["1010"].id, "Operating Checking", test_actor_id
        )
        parsed = parse_statement(SIGNED_CSV, "march.csv")

        statement = reconciliation_service.import_statement(
            bank_account.id,
            organization.id,
            test_actor_id,
            statement_date=date(2026, 3, 31),
            period_start=date(2026, 3, 1),
            period_end=date(2026, 3, 31),
            lines=parsed.lines,
            file_name="march.csv",
        )

        assert [line.description for line in statement.lines] == [
            "CHECK 1234",
            "DEPOSIT",
            "MONTHLY SERVICE FEE",
        ]
