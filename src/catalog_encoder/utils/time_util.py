import time
from datetime import datetime, timedelta, timezone


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def parse_hms(value):
    """Parse a ``00h01m02s`` or ``01:02:03.45`` string into seconds, or None."""
    if not value:
        return None
    value = value.strip()
    try:
        if ":" in value:
            parts = [float(p) for p in value.split(":")]
            seconds = 0.0
            for part in parts:
                seconds = seconds * 60 + part
            return seconds
        if value.endswith("s") and "h" in value and "m" in value:
            hours, rest = value.split("h", 1)
            mins, secs = rest.split("m", 1)
            return int(hours) * 3600 + int(mins) * 60 + int(secs.rstrip("s"))
    except ValueError:
        return None
    return None


def get_eta_total(done_count, total_count, elapsed_seconds):
    avg_time_per_item = elapsed_seconds / done_count
    remaining_seconds = avg_time_per_item * (total_count - done_count)
    return get_eta_string(remaining_seconds)


def format_runtime(runtime_seconds):
    runtime_seconds = int(runtime_seconds)
    hours = runtime_seconds // 3600
    mins = (runtime_seconds % 3600) // 60
    secs = runtime_seconds % 60
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def get_eta_string(time_in_seconds):
    completion_time = (datetime.now(timezone.utc) + timedelta(
        seconds=time_in_seconds)).strftime("%Y-%m-%d %H:%M:%S")

    eta_hours = int(time_in_seconds // 3600)
    eta_mins = int((time_in_seconds % 3600) // 60)
    eta_secs = int(time_in_seconds % 60)
    if eta_hours > 0:
        formatted_time = f"{eta_hours}h{eta_mins}m{eta_secs}s"
    elif eta_mins > 0:
        formatted_time = f"{eta_mins}m{eta_secs}s"
    else:
        formatted_time = f"{eta_secs}s"

    return f"{completion_time} ({formatted_time})"
