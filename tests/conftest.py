import pytest
from sqlalchemy import create_engine

from app.db.migrate import run_migrations
from app.gateways.models import TimeSlot
from app.logic.affiliate_cache import AffiliateLinkCache
from app.logic.records import SubIds, TimeSlotRecord
from fakes import FakeCatalog, FakeRegistry, FakeStore, make_product, product_link


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    run_migrations(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def memory_cache():
    return AffiliateLinkCache(path=None)


@pytest.fixture()
def time_slots():
    return [
        TimeSlot(time="12:00", label="Noon", order=2, is_active=True),
        TimeSlot(time="09:00", label="Morning", order=1, is_active=False),
    ]


@pytest.fixture()
def products():
    return [make_product(10, item, price=900 + item, percent=50, amount=item) for item in range(1, 4)]


@pytest.fixture()
def mapped_record():
    link = product_link(10, 1)
    return TimeSlotRecord(
        link_mapping={link: "https://s.shopee.vn/operator"},
        sub_id_mapping={link: SubIds(sub1="fb")},
        reason_mapping={link: "Thành công"},
    )


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def registry(time_slots):
    return FakeRegistry(time_slots)


@pytest.fixture()
def catalog(products):
    return FakeCatalog({"09:00": products, "12:00": products[:1], None: products})
