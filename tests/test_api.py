"""Tests for the HTTP API.

Endpoints:
- POST /discovery/evaluate, POST /pricing/quote
- GET /products/tracked, GET /products/{id}, POST /products/{id}/observations
- GET /alerts, POST /alerts/{id}/resolve
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from dropship_ops.api.app import app
from dropship_ops.db.models import MarginAlertRecord, TrackedProductRecord
from dropship_ops.scoring.models import AlertSeverity, LifecycleStatus
from dropship_ops.services.price_sync import ProductLocks

OBSERVED_AT = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def api_client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def candidate_json():
    """Listing payload that passes the default criteria."""
    return {
        "identifier": "B07XYZ1234",
        "title": "Silicone Baking Mat Set of 3",
        "price": "15.00",
        "rating": 4.6,
        "review_count": 2840,
        "is_prime_eligible": True,
        "availability_text": "In Stock",
    }


def demand_points_json(ranks: list[int]) -> list[dict]:
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)
    return [
        {"timestamp": (start + timedelta(days=i)).isoformat(), "sales_rank": rank}
        for i, rank in enumerate(ranks)
    ]


@pytest.fixture
def tracked_product_data():
    """Sample tracked product data."""
    return {
        "identifier": "B07XYZ1234",
        "title": "Silicone Baking Mat Set of 3",
        "cost_price": Decimal("15.00"),
        "list_price": Decimal("25.50"),
        "compare_at_price": Decimal("48.20"),
        "competitor_prices": {"amazon": "47.10", "ebay": "48.20"},
        "margin_percent": Decimal("41.1765"),
        "demand_score": 22.5,
        "lifecycle_status": LifecycleStatus.ACTIVE,
        "last_checked_at": OBSERVED_AT - timedelta(days=1),
    }


class TestHealth:
    """Tests for /health."""

    @pytest.mark.asyncio
    async def test_health(self):
        """Health check responds."""
        async with api_client() as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestEvaluateListing:
    """Tests for POST /discovery/evaluate endpoint."""

    @pytest.mark.asyncio
    async def test_passing_listing(self, candidate_json):
        """Good listing with steady demand is priced."""
        async with api_client() as client:
            response = await client.post(
                "/api/discovery/evaluate",
                json={
                    "candidate": candidate_json,
                    "demand_points": demand_points_json([4000, 4200, 3800, 4000]),
                    "seed": 42,
                },
            )

        assert response.status_code == 200
        data = response.json()
        assert data["passed"] is True
        assert data["rejection"] is None
        assert data["demand"]["passes_demand_gate"] is True
        assert data["demand"]["avg_rank_30d"] == pytest.approx(4000)
        assert data["demand"]["trend"] == "stable"
        assert Decimal(data["pricing"]["list_price"]) == Decimal("25.50")
        assert data["pricing"]["margin_percent"] == pytest.approx(41.18, abs=0.01)
        assert set(data["pricing"]["competitor_prices"]) == {"amazon", "costco", "ebay", "sams"}

    @pytest.mark.asyncio
    async def test_rejected_listing(self, candidate_json):
        """Rejected listing reports the reason."""
        candidate_json["is_prime_eligible"] = False

        async with api_client() as client:
            response = await client.post(
                "/api/discovery/evaluate", json={"candidate": candidate_json}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["passed"] is False
        assert data["rejection"] == "prime"
        assert data["detail"] == "Not Prime eligible"
        assert data["demand"] is None
        assert data["pricing"] is None

    @pytest.mark.asyncio
    async def test_insufficient_demand(self, candidate_json):
        """No rank history fails the demand gate."""
        async with api_client() as client:
            response = await client.post(
                "/api/discovery/evaluate", json={"candidate": candidate_json}
            )

        data = response.json()
        assert data["rejection"] == "demand"
        assert data["demand"]["insufficient_data"] is True

    @pytest.mark.asyncio
    async def test_unordered_demand_points(self, candidate_json):
        """Out-of-order rank history is rejected with 422."""
        points = demand_points_json([4000, 4200])
        points.reverse()

        async with api_client() as client:
            response = await client.post(
                "/api/discovery/evaluate",
                json={"candidate": candidate_json, "demand_points": points},
            )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_negative_price(self, candidate_json):
        """Negative listing price is rejected with 422."""
        candidate_json["price"] = "-1"

        async with api_client() as client:
            response = await client.post(
                "/api/discovery/evaluate", json={"candidate": candidate_json}
            )

        assert response.status_code == 422


class TestQuotePrice:
    """Tests for POST /pricing/quote endpoint."""

    @pytest.mark.asyncio
    async def test_default_quote(self):
        """$15 cost -> $25.50 list price."""
        async with api_client() as client:
            response = await client.post("/api/pricing/quote", json={"cost_price": "15.00", "seed": 1})

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["list_price"]) == Decimal("25.50")
        assert Decimal(data["margin_amount"]) == Decimal("10.50")
        assert data["min_margin_percent"] == 30.0
        assert Decimal(data["min_margin_price"]) == Decimal("21.43")
        assert Decimal(data["compare_at_price"]) == max(
            Decimal(p) for p in data["competitor_prices"].values()
        )

    @pytest.mark.asyncio
    async def test_markup_override(self):
        """Markup can be overridden per request."""
        async with api_client() as client:
            response = await client.post(
                "/api/pricing/quote", json={"cost_price": "10.00", "markup_percent": "100"}
            )

        assert Decimal(response.json()["list_price"]) == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_seeded_quote_reproducible(self):
        """Same seed gives the same competitor prices."""
        async with api_client() as client:
            first = await client.post("/api/pricing/quote", json={"cost_price": "12.00", "seed": 7})
            second = await client.post("/api/pricing/quote", json={"cost_price": "12.00", "seed": 7})

        assert first.json()["competitor_prices"] == second.json()["competitor_prices"]

    @pytest.mark.asyncio
    async def test_negative_cost(self):
        """Negative cost is rejected with 422."""
        async with api_client() as client:
            response = await client.post("/api/pricing/quote", json={"cost_price": "-5"})

        assert response.status_code == 422


class TestListTrackedProducts:
    """Tests for GET /products/tracked endpoint."""

    @pytest.mark.asyncio
    async def test_list_empty(self, test_db):
        """Returns empty list when nothing is tracked."""
        async with api_client() as client:
            response = await client.get("/api/products/tracked")

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0

    @pytest.mark.asyncio
    async def test_list_returns_products(self, test_db, tracked_product_data):
        """Returns tracked products."""
        test_db.add(TrackedProductRecord(**tracked_product_data))
        await test_db.flush()

        async with api_client() as client:
            response = await client.get("/api/products/tracked")

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["identifier"] == "B07XYZ1234"
        assert data["items"][0]["lifecycle_status"] == "active"

    @pytest.mark.asyncio
    async def test_filter_by_status(self, test_db, tracked_product_data):
        """Filters products by lifecycle status."""
        test_db.add(TrackedProductRecord(**tracked_product_data))
        paused_data = dict(tracked_product_data)
        paused_data["identifier"] = "B000PAUSED"
        paused_data["lifecycle_status"] = LifecycleStatus.PAUSED
        test_db.add(TrackedProductRecord(**paused_data))
        await test_db.flush()

        async with api_client() as client:
            response = await client.get("/api/products/tracked", params={"status": "paused"})

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["identifier"] == "B000PAUSED"

    @pytest.mark.asyncio
    async def test_pagination(self, test_db, tracked_product_data):
        """limit and offset page through results by demand score."""
        for i in range(3):
            data = dict(tracked_product_data)
            data["identifier"] = f"B00000000{i}"
            data["demand_score"] = float(i)
            test_db.add(TrackedProductRecord(**data))
        await test_db.flush()

        async with api_client() as client:
            response = await client.get("/api/products/tracked", params={"limit": 2, "offset": 1})

        data = response.json()
        assert data["total"] == 3
        assert [p["identifier"] for p in data["items"]] == ["B000000001", "B000000000"]


class TestGetTrackedProduct:
    """Tests for GET /products/{id} endpoint."""

    @pytest.mark.asyncio
    async def test_get_product(self, test_db, tracked_product_data):
        """Returns product details."""
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        async with api_client() as client:
            response = await client.get(f"/api/products/{record.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["identifier"] == "B07XYZ1234"
        assert Decimal(data["list_price"]) == Decimal("25.50")
        assert Decimal(data["competitor_prices"]["ebay"]) == Decimal("48.20")
        assert data["margin_below_threshold_since"] is None

    @pytest.mark.asyncio
    async def test_not_found(self, test_db):
        """Unknown id gives 404."""
        async with api_client() as client:
            response = await client.get(f"/api/products/{uuid4()}")

        assert response.status_code == 404


class TestApplyObservation:
    """Tests for POST /products/{id}/observations endpoint."""

    @pytest.mark.asyncio
    async def test_cost_increase_warns(self, test_db, tracked_product_data):
        """Cost rise to $20 drops margin below 30% and raises a warning."""
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        async with api_client() as client:
            response = await client.post(
                f"/api/products/{record.id}/observations",
                json={"cost_price": "20.00", "observed_at": OBSERVED_AT.isoformat()},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["margin_percent"] == pytest.approx(21.57, abs=0.01)
        assert Decimal(data["product"]["cost_price"]) == Decimal("20.00")
        assert data["product"]["margin_below_threshold_since"] is not None
        assert len(data["alerts"]) == 1
        assert data["alerts"][0]["severity"] == "warning"
        assert Decimal(data["alerts"][0]["suggested_price"]) == Decimal("28.58")

    @pytest.mark.asyncio
    async def test_out_of_stock(self, test_db, tracked_product_data):
        """Unavailable stock message marks the product out of stock."""
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        async with api_client() as client:
            response = await client.post(
                f"/api/products/{record.id}/observations",
                json={"cost_price": "15.00", "availability_text": "Currently unavailable."},
            )

        data = response.json()
        assert data["product"]["lifecycle_status"] == "out_of_stock"
        assert data["alerts"] == []

    @pytest.mark.asyncio
    async def test_observation_before_degradation(self, test_db, tracked_product_data):
        """Observation older than the degradation start gives 422."""
        tracked_product_data["margin_below_threshold_since"] = OBSERVED_AT
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        async with api_client() as client:
            response = await client.post(
                f"/api/products/{record.id}/observations",
                json={
                    "cost_price": "20.00",
                    "observed_at": (OBSERVED_AT - timedelta(hours=1)).isoformat(),
                },
            )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_found(self, test_db):
        """Unknown id gives 404."""
        async with api_client() as client:
            response = await client.post(
                f"/api/products/{uuid4()}/observations", json={"cost_price": "10.00"}
            )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_naive_observed_at_is_utc(self, test_db, tracked_product_data):
        """A naive observation time is read as UTC rather than failing."""
        tracked_product_data["margin_below_threshold_since"] = OBSERVED_AT
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        naive = (OBSERVED_AT + timedelta(hours=1)).replace(tzinfo=None)
        async with api_client() as client:
            response = await client.post(
                f"/api/products/{record.id}/observations",
                json={"cost_price": "20.00", "observed_at": naive.isoformat()},
            )

        assert response.status_code == 200
        data = response.json()
        assert data["alerts"] == []
        assert data["product"]["last_checked_at"].startswith("2024-06-10T13:00:00")

    @pytest.mark.asyncio
    async def test_naive_observed_at_before_degradation(self, test_db, tracked_product_data):
        """Naive times are compared as UTC against the degradation start."""
        tracked_product_data["margin_below_threshold_since"] = OBSERVED_AT
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()

        naive = (OBSERVED_AT - timedelta(hours=1)).replace(tzinfo=None)
        async with api_client() as client:
            response = await client.post(
                f"/api/products/{record.id}/observations",
                json={"cost_price": "20.00", "observed_at": naive.isoformat()},
            )

        assert response.status_code == 422


class TestConcurrentObservations:
    """Overlapping observations for one product, each with its own session."""

    @pytest.mark.asyncio
    async def test_one_warning_per_degradation(
        self, file_db, tracked_product_data, monkeypatch
    ):
        """Two simultaneous low readings start the degradation once."""
        monkeypatch.setattr(app.state, "product_locks", ProductLocks())
        async with file_db() as session:
            record = TrackedProductRecord(**tracked_product_data)
            session.add(record)
            await session.commit()
            product_id = record.id

        # $22 against $25.50 is a 13.7% margin
        payload = {"cost_price": "22.00", "observed_at": OBSERVED_AT.isoformat()}
        async with api_client() as client:
            responses = await asyncio.gather(
                client.post(f"/api/products/{product_id}/observations", json=payload),
                client.post(f"/api/products/{product_id}/observations", json=payload),
            )

        assert [r.status_code for r in responses] == [200, 200]
        assert sum(len(r.json()["alerts"]) for r in responses) == 1

        async with file_db() as session:
            stored = (await session.execute(select(MarginAlertRecord))).scalars().all()
            product = await session.get(TrackedProductRecord, product_id)

        assert len(stored) == 1
        assert stored[0].severity == AlertSeverity.WARNING
        assert product.margin_below_threshold_since is not None
        assert product.cost_price == Decimal("22.00")


class TestAlerts:
    """Tests for /alerts endpoints."""

    @pytest.fixture
    def alert_data(self):
        return {
            "product_identifier": "B07XYZ1234",
            "severity": AlertSeverity.WARNING,
            "margin_percent": Decimal("21.5686"),
            "threshold_percent": Decimal("30.0"),
            "message": "Margin 21.6% is below minimum 30.0%",
            "suggested_price": Decimal("28.58"),
            "created_at": OBSERVED_AT,
        }

    @pytest.mark.asyncio
    async def test_list_and_resolve(self, test_db, tracked_product_data, alert_data):
        """Resolved alerts drop out of the default listing."""
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()
        alert = MarginAlertRecord(tracked_product_id=record.id, **alert_data)
        test_db.add(alert)
        await test_db.flush()

        async with api_client() as client:
            listed = await client.get("/api/alerts")
            resolved = await client.post(f"/api/alerts/{alert.id}/resolve")
            after = await client.get("/api/alerts")
            with_resolved = await client.get("/api/alerts", params={"include_resolved": True})

        assert [a["product_identifier"] for a in listed.json()] == ["B07XYZ1234"]
        assert resolved.json()["is_resolved"] is True
        assert after.json() == []
        assert len(with_resolved.json()) == 1

    @pytest.mark.asyncio
    async def test_filter_by_severity(self, test_db, tracked_product_data, alert_data):
        """Alerts can be filtered by severity."""
        record = TrackedProductRecord(**tracked_product_data)
        test_db.add(record)
        await test_db.flush()
        test_db.add(MarginAlertRecord(tracked_product_id=record.id, **alert_data))
        await test_db.flush()

        async with api_client() as client:
            response = await client.get("/api/alerts", params={"severity": "critical"})

        assert response.json() == []

    @pytest.mark.asyncio
    async def test_resolve_not_found(self, test_db):
        """Unknown alert gives 404."""
        async with api_client() as client:
            response = await client.post(f"/api/alerts/{uuid4()}/resolve")

        assert response.status_code == 404
