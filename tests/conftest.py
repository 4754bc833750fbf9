"""
Fixtures compartidas.

Dobles en memoria para Redis y para los repositorios de Supabase, de modo
que el core se prueba sin servicios externos.
"""

import time
from typing import Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from vitrina.cache import BackgroundQueue, CacheInvalidator, RedisCache
from vitrina.config import Settings
from vitrina.errors import StoreUnavailable
from vitrina.listings import ListingService


# ---------------------------------------------------------------------------
# Redis en memoria
# ---------------------------------------------------------------------------


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._ops: list = []

    def delete(self, *keys):
        self._ops.append(keys)
        return self

    def execute(self):
        self._redis.pipelines_executed += 1
        self._redis._check("pipeline")
        return [self._redis.delete(*keys) for keys in self._ops]


class FakeRedis:
    """Subconjunto de redis.Redis: get/set/delete/scan/pipeline/ping."""

    def __init__(self):
        self._data: dict[str, tuple[bytes, Optional[float]]] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.pipelines_executed = 0

    def _check(self, operation: str):
        self.calls.append(operation)
        if operation in self.failing or "*" in self.failing:
            raise RedisConnectionError(f"{operation} no disponible")

    def _alive(self, key: str) -> bool:
        entry = self._data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return False
        return True

    def get(self, key):
        self._check("get")
        if not self._alive(key):
            return None
        return self._data[key][0]

    def set(self, key, value, ex=None):
        self._check("set")
        if isinstance(value, str):
            value = value.encode("utf-8")
        expires_at = time.monotonic() + ex if ex else None
        self._data[key] = (value, expires_at)
        return True

    def delete(self, *keys):
        self._check("delete")
        deleted = 0
        for key in keys:
            if self._alive(key):
                del self._data[key]
                deleted += 1
        return deleted

    def scan(self, cursor=0, match=None, count=None):
        self._check("scan")
        prefix = (match or "*").rstrip("*")
        keys = sorted(k for k in list(self._data) if self._alive(k) and k.startswith(prefix))
        count = count or 10
        page = keys[cursor:cursor + count]
        next_cursor = cursor + count if cursor + count < len(keys) else 0
        return next_cursor, page

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    def ping(self):
        self._check("ping")
        return True

    def ttl(self, key) -> Optional[float]:
        entry = self._data.get(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - time.monotonic()

    def expire_now(self, key):
        value, _ = self._data[key]
        self._data[key] = (value, time.monotonic() - 1)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in list(self._data) if self._alive(k) and k.startswith(prefix))


# ---------------------------------------------------------------------------
# Repositorios en memoria
# ---------------------------------------------------------------------------


class _FailingMixin:
    failing = False

    def _check(self, operation: str):
        self.calls.append(operation)
        if self.failing:
            raise StoreUnavailable(f"{operation} no disponible")


class InMemoryListingRepository(_FailingMixin):
    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.calls: list[str] = []

    def find(self, predicate, limit=10):
        self._check("find")
        matched = [dict(row) for row in self.rows.values() if predicate.matches(row)]
        matched.sort(key=lambda row: row.get("createdAt", ""), reverse=True)
        return matched[:limit]

    def get_by_id(self, listing_id):
        self._check("get_by_id")
        row = self.rows.get(listing_id)
        return dict(row) if row else None

    def create(self, listing):
        self._check("create")
        data = listing.to_db_dict()
        self.rows[data["id"]] = data
        return dict(data)

    def update(self, listing_id, owner_id, patch):
        self._check("update")
        row = self.rows.get(listing_id)
        if row is None or row.get("createdBy") != owner_id:
            return 0
        row.update(patch)
        return 1

    def delete(self, listing_id, owner_id):
        self._check("delete")
        row = self.rows.get(listing_id)
        if row is None or row.get("createdBy") != owner_id:
            return 0
        del self.rows[listing_id]
        return 1


class InMemoryFavoriteRepository(_FailingMixin):
    def __init__(self, listings: InMemoryListingRepository):
        self.listings = listings
        self.rows: list[dict] = []
        self.calls: list[str] = []

    def listing_ids_for_user(self, user_id, listing_ids):
        self._check("listing_ids_for_user")
        wanted = set(listing_ids)
        return {
            row["listingId"]
            for row in self.rows
            if row["userId"] == user_id and row["listingId"] in wanted
        }

    def exists(self, user_id, listing_id):
        self._check("exists")
        return any(
            row["userId"] == user_id and row["listingId"] == listing_id
            for row in self.rows
        )

    def create(self, favorite):
        self._check("create")
        data = favorite.to_db_dict()
        self.rows.append(data)
        return dict(data)

    def delete(self, user_id, listing_id):
        self._check("delete")
        before = len(self.rows)
        self.rows = [
            row for row in self.rows
            if not (row["userId"] == user_id and row["listingId"] == listing_id)
        ]
        return before - len(self.rows)

    def favorite_listings(self, user_id):
        self._check("favorite_listings")
        return [
            {**row, "listings": self.listings.rows.get(row["listingId"])}
            for row in self.rows
            if row["userId"] == user_id
        ]

    def delete_by_listing(self, listing_id):
        self._check("delete_by_listing")
        removed = [row for row in self.rows if row["listingId"] == listing_id]
        self.rows = [row for row in self.rows if row["listingId"] != listing_id]
        return removed


class InMemoryRecommendationRepository(_FailingMixin):
    def __init__(self, listings: InMemoryListingRepository):
        self.listings = listings
        self.rows: list[dict] = []
        self.calls: list[str] = []

    def create(self, recommendation):
        self._check("create")
        data = recommendation.to_db_dict()
        self.rows.append(data)
        return dict(data)

    def for_recipient(self, user_id):
        self._check("for_recipient")
        return [
            {**row, "listings": self.listings.rows.get(row["listingId"])}
            for row in self.rows
            if row["toUserId"] == user_id
        ]

    def delete_by_listing(self, listing_id):
        self._check("delete_by_listing")
        removed = [row for row in self.rows if row["listingId"] == listing_id]
        self.rows = [row for row in self.rows if row["listingId"] != listing_id]
        return removed


class InMemoryUserRepository(_FailingMixin):
    def __init__(self):
        self.by_email: dict[str, dict] = {}
        self.calls: list[str] = []

    def add(self, user_id: str, email: str):
        self.by_email[email] = {"id": user_id, "email": email}

    def get_by_email(self, email):
        self._check("get_by_email")
        return self.by_email.get(email)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    return Settings(
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        cache_ttl_seconds=600,
        list_page_limit=10,
        cache_scan_count=3,
        _env_file=None,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    return RedisCache(fake_redis)


@pytest.fixture
def background():
    queue = BackgroundQueue(name="vitrina-test")
    yield queue
    queue.shutdown()


@pytest.fixture
def invalidator(cache, background, settings):
    return CacheInvalidator(cache, background, scan_count=settings.cache_scan_count)


@pytest.fixture
def listing_repo():
    return InMemoryListingRepository()


@pytest.fixture
def favorite_repo(listing_repo):
    return InMemoryFavoriteRepository(listing_repo)


@pytest.fixture
def recommendation_repo(listing_repo):
    return InMemoryRecommendationRepository(listing_repo)


@pytest.fixture
def user_repo():
    repo = InMemoryUserRepository()
    repo.add("alice", "alice@example.com")
    repo.add("bob", "bob@example.com")
    return repo


@pytest.fixture
def service(
    listing_repo,
    favorite_repo,
    recommendation_repo,
    user_repo,
    cache,
    invalidator,
    settings,
):
    return ListingService(
        listings=listing_repo,
        favorites=favorite_repo,
        recommendations=recommendation_repo,
        users=user_repo,
        cache=cache,
        invalidator=invalidator,
        settings=settings,
    )


def make_listing(listing_id: str, owner: str = "alice", **overrides) -> dict:
    """Payload de propiedad con valores razonables."""
    payload = {
        "id": listing_id,
        "title": f"Casa {listing_id}",
        "type": "Villa",
        "price": 250000,
        "state": "CA",
        "city": "San Diego",
        "areaSqFt": 1800,
        "bedrooms": 3,
        "bathrooms": 2,
        "amenities": "pool|gym",
        "furnished": "Furnished",
        "availableFrom": "2024-06-01",
        "listedBy": "Owner",
        "tags": "family,quiet",
        "colorTheme": "#ffffff",
        "rating": 4.2,
        "isVerified": True,
        "listingType": "sale",
        "createdBy": owner,
        "createdAt": "2024-01-01T00:00:00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def seed(listing_repo):
    """Inserta propiedades directamente en el store en memoria."""

    def _seed(*listings: dict):
        for listing in listings:
            row = dict(listing)
            row.setdefault("propId", row["id"])
            listing_repo.rows[row["id"]] = row

    return _seed
