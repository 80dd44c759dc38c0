from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Tuple

from domain.models import Transaction


@dataclass(frozen=True)
class ReportFormat:
    """How a settlement is rendered for humans."""

    app_name: str = "Perkins-App"
    currency_symbol: str = "€"
    arrow: str = "→"
    scale: int = 100


DEFAULT_REPORT_FORMAT = ReportFormat()


def settle(balances: Iterable[Tuple[str, int]]) -> List[Transaction]:
    """
    Compute payer -> payee transfers that bring every balance to zero.

    Greedy matching of the largest remaining debt against the largest
    remaining credit. Zero balances are dropped. Sorting is stable, so equal
    amounts keep their input order and output is deterministic. For N
    non-zero balances at most N-1 transactions are produced.

    If the balances do not sum to zero the leftover is simply not settled.
    """

    debtors = []
    creditors = []
    for name, net in balances:
        if net < 0:
            debtors.append([name, -net])
        elif net > 0:
            creditors.append([name, net])

    debtors.sort(key=lambda item: item[1], reverse=True)
    creditors.sort(key=lambda item: item[1], reverse=True)

    transactions: List[Transaction] = []
    d = c = 0
    while d < len(debtors) and c < len(creditors):
        debtor, creditor = debtors[d], creditors[c]
        amount = min(debtor[1], creditor[1])
        transactions.append(Transaction(payer=debtor[0], payee=creditor[0], amount=amount))

        debtor[1] -= amount
        creditor[1] -= amount
        if debtor[1] == 0:
            d += 1
        if creditor[1] == 0:
            c += 1

    return transactions


def format_amount(amount: int, scale: int = 100) -> str:
    """Render an amount in the smallest unit as a two-decimal string."""

    return str((Decimal(amount) / Decimal(scale)).quantize(Decimal("0.01")))


def format_settlement_report(
    transactions: Iterable[Transaction],
    report_format: ReportFormat = DEFAULT_REPORT_FORMAT,
) -> str:
    lines = [f"Payouts powered by {report_format.app_name}:"]
    for tx in transactions:
        amount = format_amount(tx.amount, report_format.scale)
        lines.append(
            f"{tx.payer} {amount}{report_format.currency_symbol} "
            f"{report_format.arrow} {tx.payee}"
        )
    return "\n".join(lines)
