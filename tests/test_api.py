import pytest
from fastapi.testclient import TestClient

from storefront.api import main
from storefront.api.main import app, get_aggregator


@pytest.fixture()
def client(aggregator):
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_products_default_page(client):
    response = client.get("/products")
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 15
    assert body["page_size"] == 20
    assert body["items"][0]["composite_id"] == "zecat_1"
    assert body["items"][-1]["composite_id"] == "cdo_5"
    assert body["degraded_sources"] == []


def test_products_query_parameters(client):
    response = client.get("/products", params={"category": ["zecat_2"], "search": "mug", "page_size": 2, "page": 9})
    body = response.json()
    assert body["total_count"] == 5
    assert body["total_pages"] == 3
    assert body["page"] == 3
    assert [item["id"] for item in body["items"]] == ["10"]


def test_products_source_restriction(client, zecat):
    response = client.get("/products", params={"source": "cdo"})
    assert {item["source"] for item in response.json()["items"]} == {"cdo"}
    assert zecat.calls == 0


def test_products_rejects_unknown_order(client):
    assert client.get("/products", params={"order": "sideways"}).status_code == 422


def test_products_reports_degraded_source(client, cdo):
    cdo.fail = True
    body = client.get("/products").json()
    assert body["degraded_sources"] == ["cdo"]
    assert body["total_count"] == 10


def test_products_unavailable(client, zecat, cdo):
    zecat.fail = cdo.fail = True
    response = client.get("/products", params={"nocache": True})
    assert response.status_code == 503
    assert response.json() == {"detail": "Catalog temporarily unavailable"}


def test_product_detail(client, cdo):
    response = client.get("/products/cdo_PEN-2")
    assert response.status_code == 200
    assert response.json()["name"] == "CDO Pen 2"


def test_product_detail_errors(client, zecat):
    assert client.get("/products/nonsense").status_code == 400
    assert client.get("/products/zecat_999").status_code == 404
    zecat.fail = True
    assert client.get("/products/zecat_1").status_code == 503


def test_categories(client, cdo):
    cdo.fail = True
    body = client.get("/categories").json()
    assert body["categories"] == [
        {"id": "1", "source": "zecat", "label": "Drinkware"},
        {"id": "2", "source": "zecat", "label": "Writing"},
    ]


def test_products_served_stale_when_sources_fail(client, zecat, cdo, clock):
    fresh = client.get("/products").json()
    assert fresh["stale"] is False

    clock.advance(10 * 60)
    zecat.fail = cdo.fail = True
    stale = client.get("/products").json()
    assert stale["stale"] is True
    assert stale["items"] == fresh["items"]


def test_explicit_page_size_zero_is_clamped(client):
    body = client.get("/products", params={"page_size": 0}).json()
    assert body["page_size"] == 1
    assert len(body["items"]) == 1


def test_shutdown_closes_the_aggregator(aggregator, zecat, cdo, monkeypatch):
    monkeypatch.setattr(main, "_aggregator", aggregator)
    with TestClient(app) as session:
        assert session.get("/health").status_code == 200
    assert zecat.closed and cdo.closed
