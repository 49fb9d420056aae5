"""Human-readable rendering of timer results.

Pure functions: they receive already synchronized rows and never touch a
timer's queue or lock.
"""

from collections.abc import Sequence

_BYTE_UNITS = ("byte", "KiB", "MiB", "GiB", "TiB", "PiB")

_HEADERS = ("name", "time", "gctime", "n_allocs", "allocs", "thread ID", "proc ID")


def format_bytes(n: int) -> str:
    """Format a byte count with binary magnitude units.

    Example:
        format_bytes(1)      -> "1 byte"
        format_bytes(512)    -> "512 bytes"
        format_bytes(24081)  -> "23.517 KiB"
    """
    assert n >= 0, f"Byte count must be non-negative: {n}"
    value = float(n)
    unit = 0
    while value >= 1024 and unit < len(_BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{n} byte" if n == 1 else f"{n} bytes"
    return f"{value:.3f} {_BYTE_UNITS[unit]}"


def _gc_percent(gctime: float, time: float) -> str:
    # Left unclamped: a share above 100% is a measurement anomaly worth seeing
    if time == 0:
        return "0%"
    return f"{gctime / time * 100:.0f}%"


def _format_row(row) -> tuple[str, ...]:
    return (
        str(row.name),
        f"{row.time:.2f} s",
        _gc_percent(row.gctime, row.time),
        str(row.n_allocs),
        format_bytes(row.bytes),
        str(row.thread_id),
        str(row.pid),
    )


def render_table(rows: Sequence) -> str:
    """Render rows as an aligned table sorted by descending time."""
    cells = [_format_row(r) for r in sorted(rows, key=lambda r: r.time, reverse=True)]
    widths = [
        max(len(_HEADERS[j]), *(len(c[j]) for c in cells)) for j in range(len(_HEADERS))
    ]

    def line(values: Sequence[str], header: bool = False) -> str:
        parts = []
        for j, value in enumerate(values):
            if header:
                parts.append(f"{value:^{widths[j]}}")
            elif j == 0:
                parts.append(f"{value:<{widths[j]}}")
            else:
                parts.append(f"{value:>{widths[j]}}")
        return " " + "  ".join(parts) + " "

    header = line(_HEADERS, header=True)
    lines = [header, "─" * len(header)]
    lines.extend(line(c) for c in cells)
    return "\n".join(lines)


def render(rows: Sequence, total_seconds: float) -> str:
    """Render the full summary for a timer.

    Args:
        rows: Synchronized records
        total_seconds: Seconds since the timer was created

    Returns:
        Header line with the share of time measured, followed by the table
        or "No entries." when there are no rows.
    """
    measured = sum(r.time for r in rows)
    percent = measured / total_seconds * 100 if total_seconds > 0 else 0.0
    header = (
        f"TrackingTimer: {total_seconds:.2f} s since creation "
        f"({percent:.0f}% measured)."
    )
    if not rows:
        return f"{header}\nNo entries."
    return f"{header}\n{render_table(rows)}"
