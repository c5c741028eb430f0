import json
from pathlib import Path

import httpx
import pytest
import respx

from app.errors import GatewayError
from app.gateways.affiliate import AffiliateClient, load_session_cookies, save_session_cookies
from app.gateways.backend import BackendClient
from app.gateways.catalog import CatalogClient
from app.gateways.models import ItemRef
from app.gateways.registry import TimeSlotRegistryClient
from app.logic.records import TimeSlotRecord

FIXTURES = Path(__file__).parent / "fixtures" / "http"
REGISTRY_URL = "https://registry.test/api/time-buttons"
CATALOG_URL = "https://catalog.test/api/products"
AFFILIATE_URL = "https://affiliate.test/api/v3/gql"
BACKEND_URL = "http://backend.test/api"


def load_fixture(path: str) -> str:
    return (FIXTURES / path).read_text()


@pytest.mark.asyncio
async def test_registry_sorts_and_labels_slots():
    async with respx.mock(assert_all_called=True) as router:
        router.get(REGISTRY_URL).mock(return_value=httpx.Response(200, text=load_fixture("registry/time_buttons.json")))
        async with httpx.AsyncClient() as session:
            slots = await TimeSlotRegistryClient(REGISTRY_URL, session=session).fetch_time_slots()

    assert [slot.time for slot in slots] == ["09:00", "12:00"]
    assert [slot.label for slot in slots] == ["Sáng", "12:00 - 15:00"]
    assert [slot.is_active for slot in slots] == [False, True]


@pytest.mark.asyncio
async def test_registry_without_success_flag_is_empty():
    async with respx.mock() as router:
        router.get(REGISTRY_URL).mock(return_value=httpx.Response(200, json={"success": False}))
        async with httpx.AsyncClient() as session:
            assert await TimeSlotRegistryClient(REGISTRY_URL, session=session).fetch_time_slots() == []


@pytest.mark.asyncio
async def test_catalog_sends_slot_and_parses_products():
    async with respx.mock(assert_all_called=True) as router:
        route = router.get(url__startswith=CATALOG_URL).mock(
            return_value=httpx.Response(200, text=load_fixture("catalog/products_0900.json"))
        )
        async with httpx.AsyncClient() as session:
            page = await CatalogClient(CATALOG_URL, session=session).fetch_products("09:00")

    params = route.calls.last.request.url.params
    assert (params["page"], params["limit"], params["time"]) == ("1", "10000", "09:00")
    assert page.total == 2
    assert page.products[0].price == 1000.0
    assert page.products[0].amount == 150
    assert page.products[1].original_price == 0.0


@pytest.mark.asyncio
async def test_catalog_server_error_raises():
    async with respx.mock() as router:
        router.get(url__startswith=CATALOG_URL).mock(return_value=httpx.Response(502, text="bad gateway"))
        async with httpx.AsyncClient() as session:
            with pytest.raises(GatewayError) as excinfo:
                await CatalogClient(CATALOG_URL, session=session).fetch_products()

    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_affiliate_batch_sends_session_headers():
    cookies = {"SPC_EC": "token", "csrftoken": "csrf123"}
    refs = [ItemRef(111, 222, "https://shopee.vn/product/111/222"), ItemRef(111, 333, "https://shopee.vn/product/111/333")]
    async with respx.mock(assert_all_called=True) as router:
        route = router.post(AFFILIATE_URL).mock(
            return_value=httpx.Response(200, text=load_fixture("affiliate/batch_custom_link.json"))
        )
        async with httpx.AsyncClient() as session:
            links = await AffiliateClient(cookies, url=AFFILIATE_URL, session=session).batch_custom_link(refs)

    request = route.calls.last.request
    body = json.loads(request.content)
    assert body["variables"]["input"]["links"] == [{"shopId": 111, "itemId": 222}, {"shopId": 111, "itemId": 333}]
    assert "batchCustomLink" in body["query"]
    assert request.headers["Csrf-Token"] == "csrf123"
    assert request.headers["Cookie"] == "SPC_EC=token; csrftoken=csrf123"
    assert request.headers["Referer"] == "https://affiliate.shopee.vn/offer/custom_link"
    assert links[0].long_link == "https://shopee.vn/product/111/222?utm_source=an_1"
    assert links[1].long_link is None
    assert links[1].fail_code == 11


@pytest.mark.asyncio
async def test_affiliate_error_payload_raises():
    async with respx.mock() as router:
        router.post(AFFILIATE_URL).mock(return_value=httpx.Response(200, json={"errors": [{"message": "not logged in"}]}))
        async with httpx.AsyncClient() as session:
            client = AffiliateClient({"csrftoken": "x"}, url=AFFILIATE_URL, session=session)
            with pytest.raises(GatewayError, match="not logged in"):
                await client.batch_custom_link([ItemRef(1, 2, "https://shopee.vn/product/1/2")])


def test_session_cookies_round_trip(tmp_path):
    path = tmp_path / "cookies.json"
    assert load_session_cookies(path) == {}

    save_session_cookies({"csrftoken": "abc"}, path)
    assert load_session_cookies(path) == {"csrftoken": "abc"}

    path.write_text("[1, 2]")
    assert load_session_cookies(path) == {}

    path.write_bytes(b"\xff\xfe{bad")
    assert load_session_cookies(path) == {}


@pytest.mark.asyncio
async def test_backend_upsert_posts_whole_record(mapped_record):
    async with respx.mock(assert_all_called=True) as router:
        route = router.post(f"{BACKEND_URL}/data").mock(return_value=httpx.Response(200, json={"success": True}))
        async with httpx.AsyncClient() as session:
            await BackendClient(BACKEND_URL, session=session).upsert("09:00", mapped_record)

    body = json.loads(route.calls.last.request.content)
    assert body == {"timeSlot": "09:00", "data": mapped_record.to_dict()}


@pytest.mark.asyncio
async def test_backend_delete_quotes_slot_key():
    async with respx.mock(assert_all_called=True) as router:
        route = router.delete(url__startswith=f"{BACKEND_URL}/data/").mock(
            return_value=httpx.Response(200, json={"success": True})
        )
        async with httpx.AsyncClient() as session:
            await BackendClient(BACKEND_URL, session=session).delete("09:00")

    assert route.calls.last.request.url.raw_path == b"/api/data/09%3A00"


@pytest.mark.asyncio
async def test_backend_reads_records_and_status():
    payload = {"09:00": TimeSlotRecord(link_mapping={"a": "b"}).to_dict()}
    async with respx.mock(assert_all_called=True) as router:
        router.get(f"{BACKEND_URL}/data").mock(return_value=httpx.Response(200, json=payload))
        router.get(f"{BACKEND_URL}/system-status").mock(
            return_value=httpx.Response(200, json={"success": True, "isActive": False})
        )
        async with httpx.AsyncClient() as session:
            backend = BackendClient(BACKEND_URL, session=session)
            records = await backend.read_all()
            active = await backend.get_system_status()

    assert records["09:00"].link_mapping == {"a": "b"}
    assert active is False


@pytest.mark.asyncio
async def test_backend_save_failure_raises():
    async with respx.mock() as router:
        router.post(f"{BACKEND_URL}/data").mock(
            return_value=httpx.Response(500, json={"success": False, "error": "disk full"})
        )
        async with httpx.AsyncClient() as session:
            with pytest.raises(GatewayError):
                await BackendClient(BACKEND_URL, session=session).upsert("09:00", TimeSlotRecord())


def test_cookie_header_parsing():
    from scripts.save_cookies import parse_cookie_header

    assert parse_cookie_header("SPC_EC=abc; csrftoken=x=y ; junk") == {"SPC_EC": "abc", "csrftoken": "x=y"}


@pytest.mark.asyncio
async def test_registry_tolerates_odd_slot_entries():
    payload = {
        "success": True,
        "data": [{"time": "12:00", "order": "late"}, "junk", {"time": "09:00", "order": 1, "label": "Morning"}],
    }
    async with respx.mock() as router:
        router.get(REGISTRY_URL).mock(return_value=httpx.Response(200, json=payload))
        async with httpx.AsyncClient() as session:
            slots = await TimeSlotRegistryClient(REGISTRY_URL, session=session).fetch_time_slots()

    assert [(slot.time, slot.order) for slot in slots] == [("12:00", 0), ("09:00", 1)]


@pytest.mark.asyncio
async def test_catalog_non_numeric_total_falls_back_to_count():
    payload = {"success": True, "total": "lots", "data": [{"link": "https://shopee.vn/product/1/2", "amount": "n/a"}]}
    async with respx.mock() as router:
        router.get(url__startswith=CATALOG_URL).mock(return_value=httpx.Response(200, json=payload))
        async with httpx.AsyncClient() as session:
            page = await CatalogClient(CATALOG_URL, session=session).fetch_products("09:00")

    assert page.total == 1
    assert page.products[0].amount == 0


@pytest.mark.asyncio
async def test_backend_rejects_non_object_payloads():
    async with respx.mock() as router:
        router.get(f"{BACKEND_URL}/data").mock(return_value=httpx.Response(200, json=["09:00"]))
        router.get(f"{BACKEND_URL}/time-slots").mock(return_value=httpx.Response(200, json=["09:00"]))
        async with httpx.AsyncClient() as session:
            backend = BackendClient(BACKEND_URL, session=session)
            with pytest.raises(GatewayError):
                await backend.read_all()
            with pytest.raises(GatewayError):
                await backend.list_time_slots()


@pytest.mark.asyncio
async def test_backend_discards_malformed_record_fields():
    payload = {"09:00": {"linkMapping": ["x"], "subIdMapping": {"a": "fb"}, "productCache": {"a": "bad"}}}
    async with respx.mock() as router:
        router.get(f"{BACKEND_URL}/data").mock(return_value=httpx.Response(200, json=payload))
        async with httpx.AsyncClient() as session:
            records = await BackendClient(BACKEND_URL, session=session).read_all()

    record = records["09:00"]
    assert record.link_mapping == {}
    assert not record.sub_id_mapping["a"].any()
    assert record.product_cache == {}
