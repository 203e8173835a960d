import math
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from orchestrator.errors import ObservationReadError, ObservationUnavailable, ObservationWriteError
from storage.observation_store import Observation, ObservationStore

# Error codes that mean the table itself is unusable, not just one item.
_INFRA_ERROR_CODES = {
    "ResourceNotFoundException",
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ServiceUnavailable",
    "InternalServerError",
    "ProvisionedThroughputExceededException",
    "RequestLimitExceeded",
}


class DynamoObservationStore(ObservationStore):
    """
    DynamoDB-backed observation store.

    Table schema (you create it):
      - PK: key (S)
      - Attributes: payload (S, JSON observation), expires_at (N, epoch seconds)
      - Enable TTL on expires_at. DynamoDB deletes expired items lazily, so
        reads also check expires_at themselves.
    """

    def __init__(self, table_name: str, region_name: str | None = None, clock=time.time):
        self.table_name = table_name
        self.dynamodb = boto3.resource("dynamodb", region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.clock = clock

    def _raise_for(self, op, key, e, item_error=ObservationReadError):
        code = e.response.get("Error", {}).get("Code")
        if code in _INFRA_ERROR_CODES:
            raise ObservationUnavailable(f"Dynamo {op} failed on {self.table_name}: {e}") from e
        raise item_error(f"Dynamo {op} failed for {key}: {e}") from e

    def get(self, key):
        try:
            resp = self.table.get_item(Key={"key": key}, ConsistentRead=True)
        except ClientError as e:
            self._raise_for("get", key, e)
        except BotoCoreError as e:
            raise ObservationUnavailable(f"Dynamo get failed on {self.table_name}: {e}") from e

        item = resp.get("Item")
        if not item:
            return None, False
        if float(item.get("expires_at", 0)) <= self.clock():
            return None, False
        return Observation.from_json(item.get("payload", ""), key=key), True

    def set(self, key, observation, ttl):
        item = {
            "key": key,
            "payload": observation.to_json(),
            "expires_at": math.ceil(self.clock() + ttl),
        }
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            self._raise_for("put", key, e, item_error=ObservationWriteError)
        except BotoCoreError as e:
            raise ObservationUnavailable(f"Dynamo put failed on {self.table_name}: {e}") from e
