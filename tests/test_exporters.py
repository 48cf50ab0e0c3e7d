import io
import re

import pytest
from openpyxl import load_workbook

from exporters.contacts import (
    CSV_MIMETYPE,
    XLSX_MIMETYPE,
    column_widths,
    format_export,
    sanitize_filename,
    sanitize_sheet_filename,
)
from whatsapp.models import Member

BOM = b"\xef\xbb\xbf"


@pytest.fixture
def members():
    return [
        Member(phone="5511999", name="Ana, Silva", is_admin=True, is_owner=False),
        Member(phone="5511888", name='Bruno "Bê"', is_admin=False, is_owner=False),
        Member(phone="5511777", name="Carla", is_admin=False, is_owner=True),
    ]


def test_csv_rows_are_quoted_with_free_text_stripped(members):
    export = format_export("Time A", members[:2], "csv", timestamp=1700000000000)

    assert export.content.startswith(BOM)
    lines = export.content.decode("utf-8-sig").splitlines()
    assert lines == [
        "Nome,Telefone,Grupo,Admin",
        '"Ana Silva","+5511999","Time A","Sim"',
        '"Bruno Bê","+5511888","Time A","Não"',
    ]
    assert export.mimetype == CSV_MIMETYPE
    assert export.filename == "contatos_Time_A_1700000000000.csv"


def test_csv_admin_column_ignores_owner_flag(members):
    export = format_export('Grupo "X", oficial', [members[2]], "csv", timestamp=1)

    lines = export.content.decode("utf-8-sig").splitlines()
    assert lines[1] == '"Carla","+5511777","Grupo X oficial","Não"'


def test_csv_filename_uses_millisecond_timestamp(members):
    export = format_export("Equipe #1!", members, "csv")

    assert re.fullmatch(r"contatos_Equipe__1__\d{13}\.csv", export.filename)


def test_sanitizers():
    assert sanitize_filename("Equipe #1!") == "Equipe__1_"
    assert sanitize_sheet_filename("Equipe #1!") == "Equipe _1_"
    assert sanitize_sheet_filename("  Família 2024 ") == "Fam_lia 2024"


def test_xlsx_sheet_layout_and_admin_labels(members):
    export = format_export("Equipe #1!", members, "xlsx", timestamp=42)

    assert export.mimetype == XLSX_MIMETYPE
    assert export.filename == "contatos_Equipe _1__42.xlsx"
    assert "Equipe _1" in export.filename

    workbook = load_workbook(io.BytesIO(export.content))
    assert workbook.sheetnames == ["Contatos"]
    sheet = workbook["Contatos"]

    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0] == ("Nome", "Telefone", "Grupo", "Admin")
    assert rows[1] == ("Ana, Silva", "+5511999", "Equipe #1!", "Sim")
    assert rows[2][3] == "Não"
    assert rows[3][3] == "Criador"

    assert sheet.column_dimensions["A"].width == 20
    assert sheet.column_dimensions["B"].width == 18
    assert sheet.column_dimensions["C"].width == 12
    assert sheet.column_dimensions["D"].width == 10


def test_column_widths_grow_with_content():
    long_name = Member(phone="1", name="Maria Aparecida dos Santos Oliveira")
    assert column_widths("Condomínio Jardim das Flores - Bloco B", [long_name]) == [37, 18, 40, 10]
    assert column_widths("A", []) == [20, 18, 10, 10]


def test_empty_member_list_still_has_header():
    export = format_export("Vazio", [], "xlsx", timestamp=1)

    sheet = load_workbook(io.BytesIO(export.content))["Contatos"]
    assert list(sheet.iter_rows(values_only=True)) == [("Nome", "Telefone", "Grupo", "Admin")]


def test_unknown_format_is_rejected(members):
    with pytest.raises(ValueError):
        format_export("Time A", members, "pdf")
