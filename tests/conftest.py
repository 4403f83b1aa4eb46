"""Shared pytest fixtures for all tests."""
from typing import Any, Dict, Generator, Optional
from unittest.mock import MagicMock

import pytest

from cassmon.exceptions import RemoteReadError

TABLE = "org.apache.cassandra.metrics:type=ColumnFamily,keyspace=shop,scope=orders,name={}"
OS = "java.lang:type=OperatingSystem"


class FakeConnection:
    """Stands in for JolokiaConnection, answering reads from a dict keyed by (mbean, attribute)"""

    def __init__(self, values: Dict[tuple, Any]):
        self.values = values
        self.reads = []
        self.failed = False
        self.closed = False

    def read(self, object_name: str, attribute: Optional[str] = None) -> Any:
        self.reads.append((object_name, attribute))
        try:
            return self.values[(object_name, attribute)]
        except KeyError:
            raise RemoteReadError(
                object_name, attribute, 404, "javax.management.InstanceNotFoundException", object_name
            ) from None

    def close(self):
        self.closed = True


def jolokia_response(value: Any = None, status: int = 200, http_status: int = 200, **extra) -> MagicMock:
    """Build a mocked requests.Response carrying a Jolokia JSON body."""
    response = MagicMock()
    response.status_code = http_status
    response.reason = "OK" if http_status == 200 else "Unauthorized"
    body = {"status": status, **extra}
    if value is not None:
        body["value"] = value
    response.json.return_value = body
    return response


@pytest.fixture
def version_response() -> MagicMock:
    return jolokia_response({"agent": "1.7.2", "protocol": "7.2"})


@pytest.fixture
def mock_session(version_response) -> MagicMock:
    """Mock requests session whose first POST answers the version handshake."""
    session = MagicMock()
    session.post.return_value = version_response
    return session


@pytest.fixture
def node_values() -> Dict[tuple, Any]:
    """Known values for the object names a Cassandra node exposes."""
    timer = {
        "Count": 400, "Min": 20.0, "Max": 900.0, "Mean": 125.5, "StdDev": 3.1,
        "50thPercentile": 110.0, "99thPercentile": 850.0,
        "OneMinuteRate": 1.5, "MeanRate": 1.2, "RateUnit": "events/second",
        "DurationUnit": "microseconds",
    }
    return {
        ("org.apache.cassandra.metrics:type=Client,name=connectedNativeClients", "Value"): 12,
        ("org.apache.cassandra.metrics:type=Client,name=connectedThriftClients", "Value"): 3,
        (TABLE.format("LiveDiskSpaceUsed"), "Count"): 1536,
        (TABLE.format("LiveSSTableCount"), "Value"): 7,
        (TABLE.format("ReadLatency"), None): timer,
        (TABLE.format("ReadTotalLatency"), "Count"): 200000,
        (TABLE.format("WriteLatency"), None): {**timer, "Count": 0},
        (TABLE.format("WriteTotalLatency"), "Count"): 0,
        (TABLE.format("BloomFilterFalseRatio"), "Value"): 0.01,
        (TABLE.format("SSTablesPerReadHistogram"), None): {
            "Count": 10, "Min": 1, "Max": 3, "Mean": 1.5, "StdDev": 0.5, "50thPercentile": 1.0,
        },
        ("org.apache.cassandra.metrics:type=Compaction,name=BytesCompacted", "Count"): 4096,
        ("org.apache.cassandra.metrics:type=Compaction,name=CompletedTasks", "Value"): 42,
        ("org.apache.cassandra.metrics:type=Compaction,name=PendingTasks", "Value"): 2,
        ("org.apache.cassandra.metrics:type=Compaction,name=TotalCompactionsCompleted", None): {
            "Count": 40, "MeanRate": 0.01,
        },
        ("org.apache.cassandra.metrics:type=Storage,name=Load", "Count"): 3 * 1024 ** 3,
        ("org.apache.cassandra.metrics:type=Storage,name=Exceptions", "Count"): 0,
        ("org.apache.cassandra.metrics:type=Storage,name=TotalHints", "Count"): 5,
        ("org.apache.cassandra.metrics:type=Storage,name=TotalHintsInProgress", "Count"): 1,
        (OS, "ProcessCpuLoad"): 0.25,
        (OS, "SystemCpuLoad"): 0.5,
        (OS, "AvailableProcessors"): 8,
        (OS, "Arch"): "amd64",
        (OS, "SystemLoadAverage"): 1.75,
        (OS, "Version"): "6.1.0",
        (OS, "Name"): "Linux",
        (OS, "ProcessCpuTime"): 5_000_000_000,
        (OS, "FreePhysicalMemorySize"): 2 * 1024 ** 3,
        (OS, "TotalPhysicalMemorySize"): 16 * 1024 ** 3,
        (OS, "FreeSwapSpaceSize"): 0,
        (OS, "TotalSwapSpaceSize"): 0,
        (OS, "OpenFileDescriptorCount"): 350,
        (OS, "MaxFileDescriptorCount"): 100000,
    }


@pytest.fixture
def fake_connection(node_values) -> FakeConnection:
    return FakeConnection(node_values)


@pytest.fixture
def clean_env(monkeypatch) -> Generator[None, None, None]:
    """Remove CASSMON_* variables so the host environment cannot leak into tests."""
    for var in ("CASSMON_HOST", "CASSMON_PORT", "CASSMON_USERNAME", "CASSMON_PASSWORD",
                "CASSMON_SSL", "CASSMON_TIMEOUT", "CASSMON_LOG_LEVEL", "CASSMON_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    yield
