"""
Parse partial payments out of a legacy MySQL dump.

Only the ``complementos_pago`` table is read. Rows look like::

    (id,cuenta_id,'fecha_pago','concepto',monto_sin_iva,monto_con_iva,'created_at','updated_at')
"""
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

INSERT_RE = re.compile(r"INSERT INTO `complementos_pago` VALUES ([\s\S]+?);")
ROW_RE = re.compile(
    r"\((\d+),(\d+),'([^']+)','([^']+)',([\d.]+),([\d.]+),'([^']+)','([^']+)'\)"
)


@dataclass
class LegacyPaymentComplement:
    id: int
    account_id: int
    payment_date: str
    concept: str
    amount_without_vat: Decimal
    amount_with_vat: Decimal
    created_at: str
    updated_at: str

    @property
    def payment_day(self):
        return datetime.strptime(self.payment_date[:10], '%Y-%m-%d').date()


def parse_payment_complements(sql_content):
    """Return every ``complementos_pago`` row of a dump, or [] when the table is absent"""
    insert_match = INSERT_RE.search(sql_content)
    if not insert_match:
        return []

    rows = []
    for match in ROW_RE.finditer(insert_match.group(1)):
        rows.append(LegacyPaymentComplement(
            id=int(match.group(1)),
            account_id=int(match.group(2)),
            payment_date=match.group(3),
            concept=match.group(4),
            amount_without_vat=Decimal(match.group(5)),
            amount_with_vat=Decimal(match.group(6)),
            created_at=match.group(7),
            updated_at=match.group(8),
        ))
    return rows
