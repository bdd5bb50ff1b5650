"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
Conversions between raw numbers and the strings shown to (or typed by) users.
"""
import time


class ConvertUtils:
    _UNITS = {
        'PB': 1024 ** 5, 'P': 1024 ** 5,
        'TB': 1024 ** 4, 'T': 1024 ** 4,
        'GB': 1024 ** 3, 'G': 1024 ** 3,
        'MB': 1024 ** 2, 'M': 1024 ** 2,
        'KB': 1024, 'K': 1024,
        'B': 1,
    }

    @staticmethod
    def bytes_to_human(size_bytes: int) -> str:
        """
        Convert bytes to human-readable string (e.g., 1.50KB, 3.20MB).
        """
        if size_bytes < 0:
            return "0B"

        size = float(size_bytes)
        for unit in ["B", "KB", "MB", "GB", "TB", "PB"]:
            if size < 1024:
                return f"{size:.0f}{unit}" if unit == "B" else f"{size:.2f}{unit}"
            size /= 1024
        return f"{size:.2f}EB"

    @classmethod
    def human_to_bytes(cls, size_str: str) -> int:
        """
        Convert human-readable size string to bytes.
        Supports formats: '1.5GB', '2048KB', '1000', '1K', '1M', '1G', etc.
        Raises ValueError for negative sizes or invalid formats.
        """
        size_str = size_str.strip().upper()

        # Longest suffix first, so 'KB' is not read as 'K' + 'B'
        for unit in sorted(cls._UNITS, key=len, reverse=True):
            if size_str.endswith(unit):
                value_str = size_str[:-len(unit)].strip()
                try:
                    value = float(value_str)
                except ValueError:
                    raise ValueError(f"Invalid numeric value in size: '{value_str}'") from None

                if value < 0:
                    raise ValueError(f"Negative size not allowed: '{size_str}'")
                return int(value * cls._UNITS[unit])

        try:
            value = int(size_str)
        except ValueError:
            raise ValueError(
                f"Invalid size format: '{size_str}'. "
                f"Supported formats: 1.5GB, 2048KB, 1000, 1K, 1M, etc."
            ) from None

        if value < 0:
            raise ValueError(f"Negative size not allowed: '{size_str}'")
        return value

    @staticmethod
    def ratio_to_percent(ratio: float) -> str:
        """0.263 → '26.3%'"""
        return f"{ratio * 100:.1f}%"

    @staticmethod
    def format_duration(seconds: float) -> str:
        """0.42 → '420ms', 75 → '1m 15s'"""
        if seconds < 1:
            return f"{seconds * 1000:.0f}ms"
        if seconds < 60:
            return f"{seconds:.2f}s"
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}m {secs}s"

    @staticmethod
    def timestamp_to_human(timestamp: float, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """
        Convert a Unix timestamp to a human-readable string.
        Uses local time by default.
        """
        try:
            return time.strftime(fmt, time.localtime(timestamp))
        except (OverflowError, OSError, ValueError):
            return "Invalid timestamp"
