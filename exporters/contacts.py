"""
Contact list exports: CSV and XLSX byte streams with a download filename.
"""

import io
import re
import csv
import time
from dataclasses import dataclass

import pandas as pd
from openpyxl.utils import get_column_letter

from whatsapp.models import GROUP_DEFAULT_NAME

EXPORT_FORMATS = ("csv", "xlsx")

CSV_HEADER = "Nome,Telefone,Grupo,Admin"
CSV_MIMETYPE = "text/csv; charset=utf-8"

SHEET_NAME = "Contatos"
SHEET_COLUMNS = ["Nome", "Telefone", "Grupo", "Admin"]
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

NAME_MIN_WIDTH = 20
PHONE_WIDTH = 18
GROUP_MIN_WIDTH = 10
ADMIN_WIDTH = 10


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    filename: str
    mimetype: str


# ==========================
# Utility Functions
# ==========================
def sanitize_filename(name):
    """Replace every character outside [A-Za-z0-9] with '_'."""
    return re.sub(r'[^A-Za-z0-9]', '_', name)


def sanitize_sheet_filename(name):
    """Like sanitize_filename but keeps spaces, then trims."""
    return re.sub(r'[^A-Za-z0-9 ]', '_', name).strip()


def strip_free_text(value):
    """Drop commas and double quotes so CSV fields never need escaping."""
    return (value or "").replace(",", "").replace('"', "")


def csv_admin_label(member):
    return "Sim" if member.is_admin else "Não"


def sheet_admin_label(member):
    if member.is_owner:
        return "Criador"
    return "Sim" if member.is_admin else "Não"


def column_widths(group_name, members):
    longest_name = max((len(member.name or "") for member in members), default=0)
    return [
        max(NAME_MIN_WIDTH, longest_name + 2),
        PHONE_WIDTH,
        max(GROUP_MIN_WIDTH, len(group_name) + 2),
        ADMIN_WIDTH,
    ]


def _millis():
    return int(time.time() * 1000)


# ==========================
# Exporters
# ==========================
def to_csv(group_name, members, timestamp=None):
    group = strip_free_text(group_name or GROUP_DEFAULT_NAME)

    buffer = io.StringIO()
    buffer.write(CSV_HEADER + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for member in members:
        writer.writerow([
            strip_free_text(member.name),
            member.phone_formatted,
            group,
            csv_admin_label(member),
        ])

    safe_name = sanitize_filename(group_name or "grupo")
    filename = f"contatos_{safe_name}_{timestamp or _millis()}.csv"
    content = ("\ufeff" + buffer.getvalue()).encode("utf-8")
    return ExportFile(content=content, filename=filename, mimetype=CSV_MIMETYPE)


def to_xlsx(group_name, members, timestamp=None):
    group = group_name or GROUP_DEFAULT_NAME
    df = pd.DataFrame(
        [
            {
                "Nome": member.name,
                "Telefone": member.phone_formatted,
                "Grupo": group,
                "Admin": sheet_admin_label(member),
            }
            for member in members
        ],
        columns=SHEET_COLUMNS,
    )

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(excel_writer=writer, sheet_name=SHEET_NAME, index=False)
        sheet = writer.sheets[SHEET_NAME]
        for index, width in enumerate(column_widths(group, members), start=1):
            sheet.column_dimensions[get_column_letter(index)].width = width

    safe_name = sanitize_sheet_filename(group_name or "grupo")
    filename = f"contatos_{safe_name}_{timestamp or _millis()}.xlsx"
    return ExportFile(content=buffer.getvalue(), filename=filename, mimetype=XLSX_MIMETYPE)


def format_export(group_name, members, kind="csv", timestamp=None):
    """Serialize a member list as `kind` ("csv" or "xlsx")."""
    if kind == "csv":
        return to_csv(group_name, members, timestamp)
    if kind == "xlsx":
        return to_xlsx(group_name, members, timestamp)
    raise ValueError(f"Unsupported export format: {kind}")
