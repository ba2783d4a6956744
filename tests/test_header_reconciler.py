import pytest

from app.tbms.db.schema import SHEETS
from app.tbms.db.workbook import GridWorkbook
from app.tbms.repos.headers import HeaderReconciler, map_columns, normalize_header


def _snapshot(grid):
    return [list(values) for values in grid.worksheet.iter_rows(values_only=True)]


def test_normalize_header_strips_separators_and_case():
    assert normalize_header(" Nick-Name_ ") == "nickname"
    assert normalize_header("startDate") == normalize_header("Start Date")


def test_fresh_sheet_gets_canonical_bold_frozen_header():
    workbook = GridWorkbook()
    grid = workbook.sheet("Staff")

    mapping = HeaderReconciler().reconcile(grid, SHEETS["Staff"])

    assert grid.header() == SHEETS["Staff"].names
    assert grid.header_is_styled()
    assert not mapping.migrated


@pytest.mark.parametrize("legacy_header", ["Nick Name", "nick_name", "NickName"])
def test_fuzzy_headers_migrate_to_canonical_and_keep_data(legacy_header):
    grid = GridWorkbook().sheet("Staff")
    grid.write_row(1, ["ID", "Store Id", "name", legacy_header])
    grid.write_row(2, ["stf_1", "sto_1", "Alice", "Ali"])

    mapping = HeaderReconciler().reconcile(grid, SHEETS["Staff"])

    assert mapping.migrated
    assert grid.header() == SHEETS["Staff"].names
    row = grid.data_rows()[0]
    assert row[:4] == ["stf_1", "sto_1", "Alice", "Ali"]
    assert all(value is None for value in row[4:])


def test_reconcile_is_idempotent():
    workbook = GridWorkbook()
    grid = workbook.sheet("StockTemplate")
    grid.write_row(1, ["name", "id", "Unit"])
    grid.write_row(2, ["Milk", "itm_1", "L"])
    reconciler = HeaderReconciler()

    reconciler.reconcile(grid, SHEETS["StockTemplate"])
    after_first = _snapshot(grid)
    workbook.dirty = False

    mapping = reconciler.reconcile(grid, SHEETS["StockTemplate"])

    assert not mapping.migrated
    assert not workbook.dirty
    assert _snapshot(grid) == after_first
    assert grid.data_rows() == [["itm_1", None, "Milk", "L", None]]


def test_reordered_header_with_surplus_columns_is_trimmed():
    grid = GridWorkbook().sheet("StockTemplate")
    grid.write_row(1, ["id", "name", "category", "unit", "min", "legacy", "extra"])
    grid.write_row(2, ["itm_1", "Milk", "Dairy", "L", 2, "x", "y"])

    HeaderReconciler().reconcile(grid, SHEETS["StockTemplate"])

    assert grid.header() == ["id", "category", "name", "unit", "min"]
    assert grid.last_column() == 5
    assert grid.data_rows() == [["itm_1", "Dairy", "Milk", "L", 2]]


def test_legacy_store_stock_gains_identifier_column():
    grid = GridWorkbook().sheet("StoreStock")
    grid.write_row(1, ["storeId", "itemId", "category", "name", "unit", "min", "qty"])
    grid.write_row(2, ["sto_1", "itm_1", "Dairy", "Milk", "L", 2, 5])

    HeaderReconciler().reconcile(grid, SHEETS["StoreStock"])

    assert grid.data_rows() == [[None, "sto_1", "itm_1", "Dairy", "Milk", "L", 2, 5]]


def test_map_columns_marks_unmatched_columns_absent():
    mapping = map_columns(["Name", "id"], SHEETS["StockTemplate"])

    assert mapping.indices == (1, None, 0, None, None)
    assert mapping.absent == [1, 3, 4]
