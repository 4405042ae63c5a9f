import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def batching_bed():
    from batching.domain import batching

    bed = DomainFixture(batching)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(batching_bed):
    with batching_bed.domain_context():
        yield


def _payload(*items, personalized=None):
    """Order payload with ``(sku, quantity)`` or full item dicts."""
    body = {"items": [item if isinstance(item, dict) else {"sku": item[0], "quantity": item[1]} for item in items]}
    if personalized is not None:
        body["isPersonalized"] = personalized
    return body


def _ingest(order_number, *items, **kwargs):
    from batching.order.intake import IngestOrder

    payload = _payload(*items, **kwargs)
    return current_domain.process(
        IngestOrder(order_number=order_number, payload=json.dumps(payload)),
        asynchronous=False,
    )


def _create_cell(name="Cell A"):
    from batching.cell.management import CreateCell

    return current_domain.process(CreateCell(name=name), asynchronous=False)


def _create_cart(name="Cart 1", color="red"):
    from batching.cart.management import CreateCart

    return current_domain.process(CreateCart(name=name, color=color), asynchronous=False)


def _create_batch(order_numbers, cell_ids, **options):
    from batching.batch.creation import CreateBatch

    return current_domain.process(
        CreateBatch(order_numbers=json.dumps(order_numbers), cell_ids=json.dumps(cell_ids), **options),
        asynchronous=False,
    )


@pytest.fixture()
def payload():
    return _payload


@pytest.fixture()
def ingest_order():
    return _ingest


@pytest.fixture()
def new_cell():
    return _create_cell


@pytest.fixture()
def new_cart():
    return _create_cart


@pytest.fixture()
def new_batch():
    return _create_batch
