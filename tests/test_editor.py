import pytest

from app.admin.editor import AdminMappingEditor
from app.errors import GatewayError
from app.logic.records import SubIds, TimeSlotRecord
from app.logic.spreadsheet import ImportRow
from fakes import FakeStore, product_link

LINK = product_link(10, 1)


@pytest.fixture()
def notices():
    return []


@pytest.fixture()
def editor(store, registry, catalog, notices):
    return AdminMappingEditor(store, registry, catalog, notify=notices.append)


@pytest.mark.asyncio
async def test_start_reconciles_and_lists_slots(registry, catalog, notices):
    store = FakeStore({"09:00": TimeSlotRecord(), "18:00": TimeSlotRecord()})
    editor = AdminMappingEditor(store, registry, catalog, notify=notices.append)

    slots = await editor.start()

    assert [slot.time for slot in slots] == ["09:00", "12:00"]
    assert store.deleted == ["18:00"]
    assert "18:00" not in editor.session.all_records
    assert notices == ["Removed 1 time slots that no longer exist upstream"]


@pytest.mark.asyncio
async def test_select_slot_merges_catalog_without_saving(editor, store, mapped_record):
    store.records["09:00"] = mapped_record

    rows = await editor.select_time_slot("09:00")

    assert len(rows) == 3
    assert rows[0].conversion_link == "https://s.shopee.vn/operator"
    assert set(editor.session.record.product_cache) == {row.original_link for row in rows}
    assert store.upserts == []


@pytest.mark.asyncio
async def test_edit_persists_whole_record(editor, store):
    await editor.select_time_slot("09:00")

    assert await editor.edit_conversion_link(LINK, " https://s.shopee.vn/new ")
    assert await editor.edit_sub_id(LINK, 2, "zalo")
    assert await editor.edit_reason(LINK, "Link bị lỗi")

    saved = store.records["09:00"]
    assert saved.link_mapping == {LINK: "https://s.shopee.vn/new"}
    assert saved.sub_id_mapping == {LINK: SubIds(sub2="zalo")}
    assert saved.reason_mapping == {LINK: "Link bị lỗi"}
    assert len(saved.product_cache) == 3
    assert store.upserts == ["09:00"] * 3


@pytest.mark.asyncio
async def test_edit_without_slot_is_rejected(editor, store, notices):
    assert not await editor.edit_conversion_link(LINK, "https://s.shopee.vn/x")
    assert store.upserts == []
    assert notices == ["Select a time slot first"]


@pytest.mark.asyncio
async def test_invalid_reason_is_rejected_before_saving(editor, store, notices):
    await editor.select_time_slot("09:00")

    assert not await editor.edit_reason(LINK, "no idea")
    assert store.upserts == []
    assert notices and "Unknown failure reason" in notices[0]


@pytest.mark.asyncio
async def test_failed_save_reverts_in_memory_record(editor, store, notices):
    await editor.select_time_slot("09:00")
    before = editor.session.record
    store.fail_upserts = True

    assert not await editor.edit_conversion_link(LINK, "https://s.shopee.vn/x")

    assert editor.session.record == before
    assert editor.rows()[0].conversion_link == ""
    assert notices and notices[-1].startswith("Could not save changes for 09:00")


@pytest.mark.asyncio
async def test_unreadable_record_starts_empty(editor, store):
    store.fail_reads = True
    rows = await editor.select_time_slot("09:00")

    assert [row.conversion_link for row in rows] == ["", "", ""]


@pytest.mark.asyncio
async def test_clear_slot_repopulates_only_product_cache(editor, store, mapped_record):
    store.records["09:00"] = mapped_record
    await editor.select_time_slot("09:00")

    assert await editor.clear_time_slot()

    record = editor.session.record
    assert "09:00" not in store.records
    assert record.link_mapping == {}
    assert record.sub_id_mapping == {}
    assert record.reason_mapping == {}
    assert len(record.product_cache) == 3


@pytest.mark.asyncio
async def test_clear_all_resets_session(editor, store, mapped_record):
    store.records["09:00"] = mapped_record
    await editor.start()
    await editor.select_time_slot("09:00")

    assert await editor.clear_all()

    assert store.records == {}
    assert editor.session.all_records == {}
    assert editor.session.current_slot == ""
    assert editor.rows() == []


@pytest.mark.asyncio
async def test_selecting_no_slot_clears_rows(editor):
    await editor.select_time_slot("09:00")
    assert await editor.select_time_slot("") == []
    assert editor.summary() == "No data"


@pytest.mark.asyncio
async def test_import_overwrites_non_empty_columns_and_saves_once(editor, store, mapped_record):
    store.records["09:00"] = mapped_record
    await editor.select_time_slot("09:00")
    rows = [
        ImportRow(original_link=LINK, sub_ids=SubIds(sub1="tiktok")),
        ImportRow(original_link=product_link(10, 2), conversion_link="https://s.shopee.vn/two", reason="Khác"),
    ]

    assert await editor.import_rows(rows)

    saved = store.records["09:00"]
    assert saved.link_mapping[LINK] == "https://s.shopee.vn/operator"
    assert saved.sub_id_mapping[LINK] == SubIds(sub1="tiktok")
    assert saved.link_mapping[product_link(10, 2)] == "https://s.shopee.vn/two"
    assert saved.reason_mapping[product_link(10, 2)] == "Khác"
    assert store.upserts == ["09:00"]


@pytest.mark.asyncio
async def test_import_requires_slot(editor, store, notices):
    assert not await editor.import_rows([ImportRow(original_link=LINK)])
    assert store.upserts == []
    assert notices == ["Select a time slot before importing"]


@pytest.mark.asyncio
async def test_catalog_failure_keeps_record(editor, catalog, notices):
    catalog.error = GatewayError("catalog down")

    rows = await editor.select_time_slot("09:00")

    assert rows == []
    assert editor.session.record == TimeSlotRecord()
    assert notices == ["Error loading products: catalog down"]


@pytest.mark.asyncio
async def test_export_rows_and_file(editor, tmp_path):
    await editor.select_time_slot("09:00")
    await editor.edit_sub_id(LINK, 1, "fb")

    rows = editor.export_rows()
    assert rows[0]["Liên kết gốc"] == LINK
    assert rows[0]["Sub id1"] == "fb"

    path = editor.export_file(tmp_path)
    assert path.exists()
    assert path.name.startswith("mappings-09-00-")
    assert editor.summary() == "Time slot: 09:00 - total products: 3"


@pytest.mark.asyncio
async def test_import_file_in_legacy_encoding_is_reported(editor, store, mapped_record, notices, tmp_path):
    store.records["09:00"] = mapped_record
    await editor.select_time_slot("09:00")
    path = tmp_path / "legacy.csv"
    path.write_bytes(b"Li\xean k\xeat g\xf4c,Sub id1\n" + f"{LINK},fb\n".encode())

    assert not await editor.import_file(path)

    assert store.upserts == []
    assert editor.session.record.link_mapping == mapped_record.link_mapping
    assert notices and notices[-1].startswith("Could not read the spreadsheet")


@pytest.mark.asyncio
async def test_import_file_reads_exported_sheet(editor, store, tmp_path):
    await editor.select_time_slot("09:00")
    path = tmp_path / "sheet.csv"
    path.write_text(f"Liên kết gốc,Sub id1\n{LINK},fb\n", encoding="utf-8-sig")

    assert await editor.import_file(path)
    assert store.records["09:00"].sub_id_mapping[LINK] == SubIds(sub1="fb")
