import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from cassmon.connection import validate_property
from cassmon.exceptions import RemoteReadError, UnknownMetricError

logger = logging.getLogger(__name__)


class ProxyKind(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"
    METER = "meter"
    TIMER = "timer"
    HISTOGRAM = "histogram"


CLIENT_NAME = "org.apache.cassandra.metrics:type=Client,name={name}"
COLUMN_FAMILY_NAME = "org.apache.cassandra.metrics:type={type},keyspace={keyspace},scope={scope},name={name}"
COMPACTION_NAME = "org.apache.cassandra.metrics:type=Compaction,name={name}"
STORAGE_NAME = "org.apache.cassandra.metrics:type=Storage,name={name}"
OPERATING_SYSTEM_NAME = "java.lang:type=OperatingSystem"

CLIENT_METRICS = {
    "connectedNativeClients": ProxyKind.GAUGE,
    "connectedThriftClients": ProxyKind.GAUGE,
}

COLUMN_FAMILY_METRICS = {
    **dict.fromkeys([
        "BloomFilterDiskSpaceUsed", "BloomFilterFalsePositives", "BloomFilterFalseRatio",
        "BloomFilterOffHeapMemoryUsed", "IndexSummaryOffHeapMemoryUsed",
        "CompressionMetadataOffHeapMemoryUsed", "CompressionRatio",
        "EstimatedColumnCountHistogram", "EstimatedRowSizeHistogram", "EstimatedRowCount",
        "KeyCacheHitRate", "LiveSSTableCount", "MaxRowSize", "MeanRowSize",
        "MemtableColumnsCount", "MemtableLiveDataSize", "MemtableOffHeapSize", "MinRowSize",
        "RecentBloomFilterFalsePositives", "RecentBloomFilterFalseRatio", "SnapshotsSize",
    ], ProxyKind.GAUGE),
    **dict.fromkeys([
        "LiveDiskSpaceUsed", "MemtableSwitchCount", "SpeculativeRetries", "TotalDiskSpaceUsed",
        "WriteTotalLatency", "ReadTotalLatency", "PendingFlushes",
    ], ProxyKind.COUNTER),
    **dict.fromkeys([
        "ReadLatency", "CoordinatorReadLatency", "CoordinatorScanLatency", "WriteLatency",
    ], ProxyKind.TIMER),
    **dict.fromkeys([
        "LiveScannedHistogram", "SSTablesPerReadHistogram", "TombstoneScannedHistogram",
    ], ProxyKind.HISTOGRAM),
}

COMPACTION_METRICS = {
    "BytesCompacted": ProxyKind.COUNTER,
    "CompletedTasks": ProxyKind.GAUGE,
    "PendingTasks": ProxyKind.GAUGE,
    "TotalCompactionsCompleted": ProxyKind.METER,
}

STORAGE_METRICS = dict.fromkeys(
    ["Exceptions", "Load", "TotalHints", "TotalHintsInProgress"], ProxyKind.COUNTER
)

# Attributes the `os` command knows about; any other OperatingSystem attribute can still be read
OPERATING_SYSTEM_METRICS = dict.fromkeys([
    "ProcessCpuLoad", "SystemCpuLoad", "AvailableProcessors", "Arch", "SystemLoadAverage",
    "Version", "Name", "ProcessCpuTime", "FreePhysicalMemorySize", "TotalPhysicalMemorySize",
    "FreeSwapSpaceSize", "TotalSwapSpaceSize", "MaxFileDescriptorCount",
    "OpenFileDescriptorCount", "CommittedVirtualMemorySize",
], ProxyKind.GAUGE)

CATALOG = {
    "client": CLIENT_METRICS,
    "table": COLUMN_FAMILY_METRICS,
    "compaction": COMPACTION_METRICS,
    "storage": STORAGE_METRICS,
    "os": OPERATING_SYSTEM_METRICS,
}


def metric_kind(category: str, name: str) -> ProxyKind:
    """Look up the proxy kind of a metric, raising UnknownMetricError if it is not catalogued"""
    try:
        return CATALOG[category][name]
    except KeyError:
        raise UnknownMetricError(category, name) from None


@dataclass
class Meter:
    count: int = 0
    mean_rate: float = 0.0
    one_minute_rate: float = 0.0
    five_minute_rate: float = 0.0
    fifteen_minute_rate: float = 0.0
    rate_unit: str = "events/second"

    @classmethod
    def from_attributes(cls, attrs: Dict[str, Any]) -> "Meter":
        return cls(
            count=attrs.get("Count", 0),
            mean_rate=attrs.get("MeanRate", 0.0),
            one_minute_rate=attrs.get("OneMinuteRate", 0.0),
            five_minute_rate=attrs.get("FiveMinuteRate", 0.0),
            fifteen_minute_rate=attrs.get("FifteenMinuteRate", 0.0),
            rate_unit=attrs.get("RateUnit", "events/second"),
        )


@dataclass
class Histogram:
    count: int = 0
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    std_dev: float = 0.0
    percentiles: Dict[str, float] = field(default_factory=dict)

    PERCENTILE_ATTRIBUTES = {
        "50th": "50thPercentile",
        "75th": "75thPercentile",
        "95th": "95thPercentile",
        "98th": "98thPercentile",
        "99th": "99thPercentile",
        "99.9th": "999thPercentile",
    }

    @classmethod
    def from_attributes(cls, attrs: Dict[str, Any]) -> "Histogram":
        return cls(
            count=attrs.get("Count", 0),
            min=attrs.get("Min", 0.0),
            max=attrs.get("Max", 0.0),
            mean=attrs.get("Mean", 0.0),
            std_dev=attrs.get("StdDev", 0.0),
            percentiles={
                label: attrs[attr] for label, attr in cls.PERCENTILE_ATTRIBUTES.items() if attr in attrs
            },
        )


@dataclass
class Timer:
    """A timer is a histogram of durations plus a meter of their rate"""
    histogram: Histogram
    meter: Meter
    duration_unit: str = "microseconds"

    @property
    def count(self) -> int:
        return self.histogram.count

    @classmethod
    def from_attributes(cls, attrs: Dict[str, Any]) -> "Timer":
        return cls(
            histogram=Histogram.from_attributes(attrs),
            meter=Meter.from_attributes(attrs),
            duration_unit=attrs.get("DurationUnit", attrs.get("LatencyUnit", "microseconds")),
        )


class MetricReader:
    """Maps metric names to typed reads over an open management session"""

    def __init__(self, connection):
        self.connection = connection

    def read_proxy(self, object_name: str, kind: ProxyKind):
        if kind is ProxyKind.GAUGE:
            return self.connection.read(object_name, "Value")
        if kind is ProxyKind.COUNTER:
            return self.connection.read(object_name, "Count")

        attrs = self.connection.read(object_name) or {}
        if kind is ProxyKind.METER:
            return Meter.from_attributes(attrs)
        if kind is ProxyKind.TIMER:
            return Timer.from_attributes(attrs)
        return Histogram.from_attributes(attrs)

    def get_connected_clients(self, metric_name: str):
        """
        Retrieve client metrics

        Args:
            metric_name: connectedNativeClients or connectedThriftClients
        """
        kind = metric_kind("client", metric_name)
        return self.read_proxy(CLIENT_NAME.format(name=metric_name), kind)

    def get_column_family_metric(self, keyspace: str, table: str, metric_name: str):
        """
        Retrieve table (column family) metrics.

        Secondary index tables are addressed as `table.index` and live under
        the IndexColumnFamily type.

        Args:
            keyspace: Keyspace the table belongs to
            table: Table for which stats are to be read
            metric_name: Any name in COLUMN_FAMILY_METRICS

        Returns:
            The gauge value, the counter count, or a Timer/Histogram snapshot
        """
        kind = metric_kind("table", metric_name)
        object_name = COLUMN_FAMILY_NAME.format(
            type="IndexColumnFamily" if "." in table else "ColumnFamily",
            keyspace=validate_property(keyspace, "keyspace"),
            scope=validate_property(table, "table"),
            name=metric_name,
        )
        return self.read_proxy(object_name, kind)

    def get_compaction_metric(self, metric_name: str):
        """Retrieve compaction metrics; TotalCompactionsCompleted reports its meter count"""
        kind = metric_kind("compaction", metric_name)
        value = self.read_proxy(COMPACTION_NAME.format(name=metric_name), kind)
        if isinstance(value, Meter):
            return value.count
        return value

    def get_storage_metric(self, metric_name: str) -> int:
        """Retrieve storage metrics: Exceptions, Load, TotalHints or TotalHintsInProgress"""
        kind = metric_kind("storage", metric_name)
        return self.read_proxy(STORAGE_NAME.format(name=metric_name), kind)

    def get_operating_system_metric(self, metric_name: str) -> Optional[Any]:
        """
        Retrieve an attribute of the remote JVM's OperatingSystem MBean.

        Remote read failures are logged and yield None; the session is marked
        as failed so the command can report it once everything else printed.
        """
        validate_property(metric_name, "attribute")
        try:
            return self.connection.read(OPERATING_SYSTEM_NAME, metric_name)
        except RemoteReadError as e:
            logger.error(f"Could not read OperatingSystem attribute {metric_name}: {e}", exc_info=True)
            self.connection.failed = True
            return None
