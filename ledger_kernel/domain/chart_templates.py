"""
Chart-of-accounts templates for 501(c)(3) nonprofits.

Pure data.  ``AccountService.seed_chart`` turns a template into account
versions, resolving ``parent_code`` to the parent's entity id.  A
``parent_code`` missing from the template leaves the account at the root.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AccountTemplate:
    code: str
    name: str
    account_type: str
    parent_code: str | None = None
    description: str | None = None


NONPROFIT_SIMPLE_TEMPLATE: tuple[AccountTemplate, ...] = (
    AccountTemplate("1000", "Cash and Cash Equivalents", "ASSET", description="All cash accounts"),
    AccountTemplate("1010", "Operating Checking Account", "ASSET", "1000"),
    AccountTemplate("1020", "Savings Account", "ASSET", "1000"),
    AccountTemplate("1030", "Petty Cash", "ASSET", "1000"),
    AccountTemplate("1100", "Accounts Receivable", "ASSET"),
    AccountTemplate("2000", "Accounts Payable", "LIABILITY"),
    AccountTemplate("2200", "Deferred Revenue", "LIABILITY"),
    AccountTemplate("3000", "Net Assets", "EQUITY"),
    AccountTemplate("4000", "Donations", "REVENUE"),
    AccountTemplate("4100", "Program Service Revenue", "REVENUE"),
    AccountTemplate("4200", "Fundraising Events", "REVENUE"),
    AccountTemplate("4300", "Investment Income", "REVENUE"),
    AccountTemplate("5000", "Program Expenses", "EXPENSE"),
    AccountTemplate("5100", "Management and General", "EXPENSE"),
    AccountTemplate("5140", "Insurance", "EXPENSE", "5100"),
    AccountTemplate("5150", "Professional Fees", "EXPENSE", "5100"),
    AccountTemplate("5200", "Fundraising Expenses", "EXPENSE"),
    AccountTemplate("5220", "Event Costs", "EXPENSE", "5200"),
    AccountTemplate("5230", "Marketing and Communications", "EXPENSE", "5200"),
)

NONPROFIT_STANDARD_TEMPLATE: tuple[AccountTemplate, ...] = (
    AccountTemplate("1000", "Cash and Cash Equivalents", "ASSET", description="All cash accounts"),
    AccountTemplate("1010", "Operating Checking Account", "ASSET", "1000"),
    AccountTemplate("1020", "Savings Account", "ASSET", "1000"),
    AccountTemplate("1030", "Petty Cash", "ASSET", "1000"),
    AccountTemplate("1100", "Accounts Receivable", "ASSET"),
    AccountTemplate("1110", "Grants Receivable", "ASSET", "1100"),
    AccountTemplate("1120", "Pledges Receivable", "ASSET", "1100"),
    AccountTemplate("1200", "Property and Equipment", "ASSET"),
    AccountTemplate("1210", "Equipment", "ASSET", "1200"),
    AccountTemplate("1220", "Accumulated Depreciation", "ASSET", "1200"),
    AccountTemplate("2000", "Accounts Payable", "LIABILITY"),
    AccountTemplate("2100", "Accrued Expenses", "LIABILITY"),
    AccountTemplate("2110", "Accrued Payroll", "LIABILITY", "2100"),
    AccountTemplate("2200", "Deferred Revenue", "LIABILITY"),
    AccountTemplate("3000", "Net Assets Without Donor Restrictions", "EQUITY"),
    AccountTemplate("3100", "Net Assets With Donor Restrictions", "EQUITY"),
    AccountTemplate("3110", "Temporarily Restricted", "EQUITY", "3100"),
    AccountTemplate("3120", "Permanently Restricted", "EQUITY", "3100"),
    AccountTemplate("4000", "Contributions", "REVENUE"),
    AccountTemplate("4010", "Individual Donations", "REVENUE", "4000"),
    AccountTemplate("4020", "Corporate Donations", "REVENUE", "4000"),
    AccountTemplate("4030", "Foundation Grants", "REVENUE", "4000"),
    AccountTemplate("4100", "Program Service Revenue", "REVENUE"),
    AccountTemplate("4110", "Program Fees", "REVENUE", "4100"),
    AccountTemplate("4200", "Fundraising Events", "REVENUE"),
    AccountTemplate("4210", "Event Ticket Sales", "REVENUE", "4200"),
    AccountTemplate("4220", "Event Sponsorships", "REVENUE", "4200"),
    AccountTemplate("4300", "Investment Income", "REVENUE"),
    AccountTemplate("5000", "Program Expenses", "EXPENSE"),
    AccountTemplate("5010", "Program Salaries", "EXPENSE", "5000"),
    AccountTemplate("5020", "Program Supplies", "EXPENSE", "5000"),
    AccountTemplate("5030", "Program Travel", "EXPENSE", "5000"),
    AccountTemplate("5100", "Management and General", "EXPENSE"),
    AccountTemplate("5110", "Administrative Salaries", "EXPENSE", "5100"),
    AccountTemplate("5120", "Office Rent", "EXPENSE", "5100"),
    AccountTemplate("5130", "Office Supplies", "EXPENSE", "5100"),
    AccountTemplate("5140", "Insurance", "EXPENSE", "5100"),
    AccountTemplate("5150", "Professional Fees", "EXPENSE", "5100"),
    AccountTemplate("5160", "Technology", "EXPENSE", "5100"),
    AccountTemplate("5200", "Fundraising Expenses", "EXPENSE"),
    AccountTemplate("5210", "Fundraising Salaries", "EXPENSE", "5200"),
    AccountTemplate("5220", "Event Costs", "EXPENSE", "5200"),
    AccountTemplate("5230", "Marketing and Communications", "EXPENSE", "5200"),
)

TEMPLATES: dict[str, tuple[AccountTemplate, ...]] = {
    "nonprofit-standard": NONPROFIT_STANDARD_TEMPLATE,
    "nonprofit-simple": NONPROFIT_SIMPLE_TEMPLATE,
}


def get_template(name: str) -> tuple[AccountTemplate, ...]:
    """Template by id.  Raises ValueError for an unknown name."""
    try:
        return TEMPLATES[name]
    except KeyError:
        raise ValueError(f"Unknown chart template: {name!r}") from None
