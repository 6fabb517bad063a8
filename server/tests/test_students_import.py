import io

import pytest
from openpyxl import Workbook, load_workbook

from ujian_gto.errors import NotFoundError, ValidationFailed
from ujian_gto.models import Student
from ujian_gto.services.students import (
    build_template_xlsx,
    delete_student,
    get_student,
    import_students,
    list_students,
    parse_students,
)


def xlsx(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def test_parse_accepts_indonesian_and_english_headers():
    records, skipped = parse_students(xlsx([
        ["Nama", "NIS", "Kelas"],
        ["Budi Santoso", 12345678, "X TKR 1"],
    ]))
    assert records == [{"name": "Budi Santoso", "nisn": "12345678", "class": "X TKR 1"}]
    assert skipped == 0

    records, _ = parse_students(xlsx([
        ["class", "name", "nisn"],
        ["X TKR 2", "Andi", "0099"],
    ]))
    assert records == [{"name": "Andi", "nisn": "0099", "class": "X TKR 2"}]


def test_parse_prefers_first_non_empty_alias():
    records, _ = parse_students(xlsx([
        ["Name", "Nama", "NISN", "NIS", "Kelas"],
        [None, "Citra", None, "555", "XI TKR"],
    ]))
    assert records == [{"name": "Citra", "nisn": "555", "class": "XI TKR"}]


def test_incomplete_rows_are_skipped():
    records, skipped = parse_students(xlsx([
        ["Nama", "NISN", "Kelas"],
        ["Budi", "1", "X"],
        ["Tanpa NISN", None, "X"],
        [None, None, None],
        ["Andi", "2", None],
    ]))
    assert [r["nisn"] for r in records] == ["1"]
    assert skipped == 2


def test_unreadable_file_rejected():
    with pytest.raises(ValidationFailed, match="Gagal memproses file Excel"):
        parse_students(b"not a spreadsheet")


def test_import_inserts_all_rows(db_session):
    result = import_students(db_session, xlsx([
        ["Nama", "NISN", "Kelas"],
        ["Budi Santoso", "12345678", "X TKR 1"],
        ["Andi Wijaya", "12345679", "X TKR 1"],
    ]))
    assert result.imported == 2
    assert result.message == "Berhasil mengimpor 2 siswa."
    assert [s.name for s in list_students(db_session)] == ["Andi Wijaya", "Budi Santoso"]


def test_import_without_expected_columns_rejected(db_session):
    with pytest.raises(ValidationFailed, match="Format file tidak sesuai"):
        import_students(db_session, xlsx([["Foo", "Bar"], ["a", "b"]]))


def test_duplicate_nisn_rejects_whole_batch(db_session, student):
    with pytest.raises(ValidationFailed, match="sudah terdaftar"):
        import_students(db_session, xlsx([
            ["Nama", "NISN", "Kelas"],
            ["Andi Wijaya", "99999999", "X TKR 1"],
            ["Budi Lagi", "12345678", "X TKR 1"],
        ]))
    assert db_session.query(Student).count() == 1


def test_template_round_trips_through_parser():
    data = build_template_xlsx()
    wb = load_workbook(io.BytesIO(data))
    ws = wb.active
    assert ws.title == "Template Siswa"
    assert [c.value for c in ws[1]] == ["Nama", "NISN", "Kelas"]
    assert ws["A1"].font.bold

    records, skipped = parse_students(data)
    assert len(records) == 2
    assert skipped == 0


def test_list_search_get_and_delete(db_session, student):
    db_session.add(Student(name="Andi Wijaya", nisn="87654321", class_="XI TKR 2"))
    db_session.commit()

    assert [s.nisn for s in list_students(db_session, "xi tkr")] == ["87654321"]
    assert [s.nisn for s in list_students(db_session, "1234")] == ["12345678"]
    assert get_student(db_session, "12345678").name == "Budi Santoso"

    delete_student(db_session, student.id)
    with pytest.raises(NotFoundError):
        get_student(db_session, "12345678")
    with pytest.raises(NotFoundError):
        delete_student(db_session, "missing")
