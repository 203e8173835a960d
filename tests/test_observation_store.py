import json
import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from orchestrator.errors import ObservationReadError, ObservationUnavailable, ObservationWriteError
from storage.dynamo_store import DynamoObservationStore
from storage.observation_store import InMemoryObservationStore, Observation
from storage.redis_store import RedisObservationStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


OBS = Observation(region="US-East", context_id="ctx-us-east", price=0.042, latency=35, observed_at=1000.0)


class TestObservation(unittest.TestCase):
    def test_json_round_trip(self):
        self.assertEqual(Observation.from_json(OBS.to_json()), OBS)

    def test_from_bytes(self):
        self.assertEqual(Observation.from_json(OBS.to_json().encode()), OBS)

    def test_negative_price_rejected(self):
        with self.assertRaises(ValueError):
            Observation(region="A", context_id="ctx-a", price=-0.01, latency=10)

    def test_undecodable_payload(self):
        with self.assertRaises(ObservationReadError):
            Observation.from_json("{not json", key="price:A")
        with self.assertRaises(ObservationReadError):
            Observation.from_json(json.dumps({"region": "A"}), key="price:A")
        with self.assertRaises(ObservationReadError):
            Observation.from_json(b"\xff\xfe{", key="price:A")


class TestInMemoryObservationStore(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = InMemoryObservationStore(clock=self.clock)

    def test_miss(self):
        self.assertEqual(self.store.get("price:US-East"), (None, False))

    def test_set_then_get(self):
        self.store.set("price:US-East", OBS, ttl=10)
        self.assertEqual(self.store.get("price:US-East"), (OBS, True))

    def test_expiry(self):
        self.store.set("price:US-East", OBS, ttl=10)
        self.clock.now += 9
        self.assertTrue(self.store.get("price:US-East")[1])
        self.clock.now += 1
        self.assertEqual(self.store.get("price:US-East"), (None, False))

    def test_overwrite_supersedes(self):
        newer = Observation(region="US-East", context_id="ctx-us-east", price=0.01, latency=80)
        self.store.set("price:US-East", OBS, ttl=10)
        self.store.set("price:US-East", newer, ttl=10)
        self.assertEqual(self.store.get("price:US-East")[0], newer)

    def test_corrupt_entry(self):
        self.store.put_raw("price:US-East", "garbage", ttl=10)
        with self.assertRaises(ObservationReadError):
            self.store.get("price:US-East")


class TestRedisObservationStore(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = RedisObservationStore(client=self.client)

    def test_set_uses_millisecond_expiry(self):
        self.store.set("price:US-East", OBS, ttl=10)
        self.client.set.assert_called_once_with("price:US-East", OBS.to_json(), px=10000)

    def test_get_hit(self):
        self.client.get.return_value = OBS.to_json().encode()
        self.assertEqual(self.store.get("price:US-East"), (OBS, True))

    def test_get_miss(self):
        self.client.get.return_value = None
        self.assertEqual(self.store.get("price:US-East"), (None, False))

    def test_connection_failure_is_unavailable(self):
        self.client.get.side_effect = RedisConnectionError("connection refused")
        with self.assertRaises(ObservationUnavailable):
            self.store.get("price:US-East")

    def test_key_error_is_read_error(self):
        self.client.get.side_effect = ResponseError("WRONGTYPE")
        with self.assertRaises(ObservationReadError):
            self.store.get("price:US-East")

    def test_rejected_write_is_write_error(self):
        self.client.set.side_effect = ResponseError("OOM command not allowed when used memory > 'maxmemory'")
        with self.assertRaises(ObservationWriteError):
            self.store.set("price:US-East", OBS, ttl=10)

    def test_write_connection_failure_is_unavailable(self):
        self.client.set.side_effect = RedisConnectionError("connection refused")
        with self.assertRaises(ObservationUnavailable):
            self.store.set("price:US-East", OBS, ttl=10)


class TestDynamoObservationStore(unittest.TestCase):
    def setUp(self):
        patcher = patch("storage.dynamo_store.boto3.resource")
        self.mock_resource = patcher.start()
        self.addCleanup(patcher.stop)
        self.table = MagicMock()
        self.mock_resource.return_value.Table.return_value = self.table
        self.clock = FakeClock()
        self.store = DynamoObservationStore("observations", region_name="us-east-1", clock=self.clock)

    def test_set_writes_expiry(self):
        self.store.set("price:US-East", OBS, ttl=10)
        item = self.table.put_item.call_args.kwargs["Item"]
        self.assertEqual(item["key"], "price:US-East")
        self.assertEqual(item["expires_at"], 1010)
        self.assertEqual(Observation.from_json(item["payload"]), OBS)

    def test_get_hit(self):
        self.table.get_item.return_value = {
            "Item": {"key": "price:US-East", "payload": OBS.to_json(), "expires_at": Decimal(1010)}
        }
        self.assertEqual(self.store.get("price:US-East"), (OBS, True))

    def test_expired_item_is_a_miss(self):
        self.table.get_item.return_value = {
            "Item": {"key": "price:US-East", "payload": OBS.to_json(), "expires_at": Decimal(999)}
        }
        self.assertEqual(self.store.get("price:US-East"), (None, False))

    def test_missing_item(self):
        self.table.get_item.return_value = {}
        self.assertEqual(self.store.get("price:US-East"), (None, False))

    def test_missing_table_is_unavailable(self):
        self.table.get_item.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, "GetItem"
        )
        with self.assertRaises(ObservationUnavailable):
            self.store.get("price:US-East")

    def test_endpoint_failure_is_unavailable(self):
        self.table.get_item.side_effect = EndpointConnectionError(endpoint_url="https://dynamodb.example")
        with self.assertRaises(ObservationUnavailable):
            self.store.get("price:US-East")

    def test_item_level_error_is_read_error(self):
        self.table.get_item.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "bad key"}}, "GetItem"
        )
        with self.assertRaises(ObservationReadError):
            self.store.get("price:US-East")

    def test_item_level_write_error_is_write_error(self):
        self.table.put_item.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "item too large"}}, "PutItem"
        )
        with self.assertRaises(ObservationWriteError):
            self.store.set("price:US-East", OBS, ttl=10)


if __name__ == '__main__':
    unittest.main()
