import math

KB = 1024
MB = KB * 1024
GB = MB * 1024
TB = GB * 1024

NOT_AVAILABLE = "n/a"


def _two_decimals(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def stringify_file_size(value: float) -> str:
    """Format a byte count with binary units, e.g. 1536 -> '1.5 KB'"""
    for unit, size in (("TB", TB), ("GB", GB), ("MB", MB), ("KB", KB)):
        if value >= size:
            return f"{_two_decimals(value / size)} {unit}"
    return f"{_two_decimals(value)} bytes"


def format_bytes(num_bytes, human_readable: bool = True) -> str:
    if num_bytes is None:
        return NOT_AVAILABLE
    return stringify_file_size(num_bytes) if human_readable else str(int(num_bytes))


def mean_latency_ms(total_latency_us, count) -> float:
    """Mean latency in milliseconds from a total in microseconds, NaN when nothing was timed"""
    if not count or count <= 0:
        return math.nan
    return total_latency_us / count / 1000


def cpu_time_ms(nanoseconds) -> float:
    if nanoseconds is None or nanoseconds <= 0:
        return math.nan
    return nanoseconds // 1_000_000


def format_value(value) -> str:
    if value is None:
        return NOT_AVAILABLE
    return str(value)


def summarize_histogram(histogram) -> str:
    parts = [
        f"count={histogram.count}",
        f"min={histogram.min:g}",
        f"mean={histogram.mean:.2f}",
        f"max={histogram.max:g}",
    ]
    parts.extend(f"{label}={value:.2f}" for label, value in histogram.percentiles.items())
    return " ".join(parts)


def summarize_timer(timer) -> str:
    return (
        f"{summarize_histogram(timer.histogram)} ({timer.duration_unit}), "
        f"rate={timer.meter.one_minute_rate:.2f} {timer.meter.rate_unit} (1m)"
    )
