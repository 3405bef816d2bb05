from .timezone import format_absolute_time, format_relative_time, format_timestamp, now_est_iso, utc_to_est

__all__ = ["format_absolute_time", "format_relative_time", "format_timestamp", "now_est_iso", "utc_to_est"]
