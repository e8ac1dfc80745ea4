import io
from datetime import date, datetime
from typing import Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill
from openpyxl.worksheet.table import Table, TableStyleInfo

from hire_ledger.models import Order
from hire_ledger.services.lifecycle import is_overdue
from hire_ledger.time_utils import naive_utc, utc_today, utcnow

HEADER = [
    "Order", "Customer", "Phone", "Status", "Event date", "Expected return",
    "Lines", "Quantity", "Checked out", "Checked in", "Overdue", "Updated at",
]

COL_WIDTHS = {
    "A": 8, "B": 24, "C": 16, "D": 16, "E": 13, "F": 16,
    "G": 8, "H": 10, "I": 12, "J": 12, "K": 9, "L": 20,
}


def build_orders_workbook(orders: Sequence[Order], today: Optional[date] = None) -> bytes:
    today = today or utc_today()

    wb = Workbook()
    ws = wb.active
    ws.title = "Orders"

    header_font = Font(bold=True)
    header_fill = PatternFill("solid", fgColor="DDDDDD")
    header_align = Alignment(horizontal="center", vertical="center")

    ws.append(HEADER)
    ws.row_dimensions[1].height = 26
    for col in range(1, len(HEADER) + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align

    for o in orders:
        lines = o.lines
        ws.append([
            o.id,
            o.customer_name,
            o.customer_phone or "",
            o.status,
            o.event_date,
            o.expected_return_date,
            len(lines),
            sum(l.quantity for l in lines),
            sum(l.quantity_checked_out for l in lines),
            sum(l.quantity_checked_in for l in lines),
            "yes" if is_overdue(o, today) else "",
            naive_utc(o.updated_at),
        ])

    data_end_row = 1 + len(orders)

    # 冻结首行
    ws.freeze_panes = "A2"

    for r in range(2, data_end_row + 1):
        ws.cell(row=r, column=5).number_format = "yyyy-mm-dd"
        ws.cell(row=r, column=6).number_format = "yyyy-mm-dd"
        ws.cell(row=r, column=12).number_format = "yyyy-mm-dd hh:mm:ss"

    for k, w in COL_WIDTHS.items():
        ws.column_dimensions[k].width = w

    # 没有数据也至少给到表头行，避免范围非法
    last_row = max(1, data_end_row)
    table = Table(displayName=f"OrdersLedger_{datetime.now().strftime('%H%M%S')}", ref=f"A1:L{last_row}")
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9",
        showFirstColumn=False,
        showLastColumn=False,
        showRowStripes=True,
        showColumnStripes=False,
    )
    ws.add_table(table)

    # 导出时间不在 Table 范围里
    ws.append([])
    ws.append(["Exported at", utcnow().strftime("%Y-%m-%d %H:%M:%S")])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
