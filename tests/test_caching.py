"""Tests for Redis caching implementation."""

import json
from unittest.mock import MagicMock

import pytest
import redis
from httpx import AsyncClient

from telecare.core.redis_client import CacheManager
from telecare.services.doctor_service import DoctorService


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    assert cache_manager.get_json("doctor:1") is None
    mock_redis.get.assert_called_once_with("doctor:1")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"full_name": "Dr Dana", "consultation_fee": 500}'
    assert cache_manager.get_json("doctor:1") == {"full_name": "Dr Dana", "consultation_fee": 500}


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("doctor:1", {"consultation_fee": 500}) is True
    mock_redis.set.assert_called_once()

    mock_redis.reset_mock()
    assert cache_manager.set_json("doctor:1", {"consultation_fee": 500}, ttl=300) is True
    mock_redis.setex.assert_called_once_with("doctor:1", 300, '{"consultation_fee": 500}')


def test_cache_manager_delete_pattern():
    """Test CacheManager delete_pattern method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    mock_redis.keys.return_value = [
        "doctor:list:1:20:*",
        "doctor:list:2:20:*",
        "doctor:list:1:20:Cardiology",
    ]
    mock_redis.delete.return_value = 3

    assert cache_manager.delete_pattern("doctor:list:*") == 3
    mock_redis.keys.assert_called_once_with("doctor:list:*")


def test_cache_failures_degrade_to_miss():
    """An unreachable Redis never fails the caller."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = redis.ConnectionError("down")
    mock_redis.setex.side_effect = redis.ConnectionError("down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("doctor:1") is None
    assert cache_manager.set_json("doctor:1", {}, ttl=60) is False


@pytest.mark.asyncio
async def test_doctor_cached_after_first_read(db_session, doctor, cache_manager, redis_mock):
    """A doctor read from the database is written to the cache."""
    service = DoctorService(cache_manager)

    found = await service.get_doctor_by_id(db_session, doctor["id"])

    assert found["full_name"] == "Dr Dana"
    key, ttl, value = redis_mock.setex.call_args.args
    assert key == f"doctor:{doctor['id']}"
    assert ttl == DoctorService.DOCTOR_CACHE_TTL
    assert json.loads(value)["consultation_fee"] == 500


@pytest.mark.asyncio
async def test_doctor_served_from_cache(db_session, cache_manager, redis_mock):
    """A cache hit does not touch the database."""
    redis_mock.get.return_value = json.dumps({"id": "cached", "full_name": "Dr Cache"})

    found = await DoctorService(cache_manager).get_doctor_by_id(db_session, "cached")

    assert found == {"id": "cached", "full_name": "Dr Cache"}


@pytest.mark.asyncio
async def test_doctor_list_invalidated_on_create(
    client: AsyncClient,
    other_patient: dict,
    admin_headers: dict,
    redis_mock,
):
    """Registering a doctor drops cached doctor listings."""
    redis_mock.keys.return_value = ["doctor:list:1:20:*"]

    response = await client.post(
        "/api/v1/admin/doctors",
        json={
            "user_id": str(other_patient["id"]),
            "full_name": "Dr Olive",
            "specialization": "Dermatology",
            "consultation_fee": 700,
            "is_verified": True,
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    redis_mock.keys.assert_called_with("doctor:list:*")
    redis_mock.delete.assert_any_call("doctor:list:1:20:*")


@pytest.mark.asyncio
async def test_doctor_listing(client: AsyncClient, doctor: dict, patient_headers: dict):
    response = await client.get("/api/v1/doctors", headers=patient_headers)

    assert response.status_code == 200
    assert [d["full_name"] for d in response.json()["items"]] == ["Dr Dana"]
