from __future__ import annotations

import os
import platform
import time

import psutil

GIB = 1024 ** 3


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


def collect_host_stats_sync(*, sample_seconds: float = 0.5, disk_path: str | None = None) -> dict:
    """Blocking host snapshot; run it through asyncio.to_thread."""
    net_before = psutil.net_io_counters()
    started = time.monotonic()
    cpu_load = psutil.cpu_percent(interval=sample_seconds)
    elapsed = max(1e-6, time.monotonic() - started)
    net_after = psutil.net_io_counters()

    mem = psutil.virtual_memory()
    disk = psutil.disk_usage(disk_path or os.path.abspath(os.sep))
    return {
        "os": f"{platform.system()} {platform.release()} ({platform.machine()})",
        "cpu_name": platform.processor() or platform.machine() or "Unknown",
        "cpu_threads": psutil.cpu_count(logical=True) or 0,
        "cpu_load": float(cpu_load),
        "ram_used_gb": (mem.total - mem.available) / GIB,
        "ram_total_gb": mem.total / GIB,
        "ram_percent": float(mem.percent),
        "disk_used_gb": disk.used / GIB,
        "disk_total_gb": disk.total / GIB,
        "disk_percent": float(disk.percent),
        "net_rx_kbs": (net_after.bytes_recv - net_before.bytes_recv) / 1024 / elapsed,
        "net_tx_kbs": (net_after.bytes_sent - net_before.bytes_sent) / 1024 / elapsed,
    }


def format_stats_block(
    host: dict,
    *,
    uptime_seconds: float,
    latency_ms: int,
    cache_channels: int,
    admitted: int,
    admitted_limit: int,
    model: str,
    tier: int,
) -> str:
    return (
        "```yaml\n"
        "💻 HARDWARE INFO\n"
        "-------------------------------------------\n"
        f"OS      : {host['os']}\n"
        f"CPU     : {host['cpu_name']}\n"
        f"Cores   : {host['cpu_threads']} Threads | Load: {host['cpu_load']:.1f}%\n"
        f"RAM     : {host['ram_used_gb']:.2f}GB / {host['ram_total_gb']:.2f}GB ({host['ram_percent']:.1f}%)\n"
        f"Disk    : {host['disk_used_gb']:.1f}GB / {host['disk_total_gb']:.1f}GB ({host['disk_percent']:.1f}%)\n"
        f"Network : ↓ {host['net_rx_kbs']:.1f} KB/s | ↑ {host['net_tx_kbs']:.1f} KB/s\n"
        "\n"
        "⚙️ BOT STATUS\n"
        "-------------------------------------------\n"
        f"Uptime  : {format_duration(uptime_seconds)}\n"
        f"Ping    : {latency_ms}ms (API)\n"
        f"Cache   : {cache_channels} channels | Tracking: {admitted}/{admitted_limit} servers\n"
        f"AI      : {model} (tier {tier})\n"
        "```"
    )


def format_stats_console(host: dict, *, uptime_seconds: float, latency_ms: int) -> str:
    return "\n".join(
        [
            f"💻 CPU: {host['cpu_name']} | Load: {host['cpu_load']:.1f}%",
            f"🧠 RAM: {host['ram_used_gb']:.2f}GB / {host['ram_total_gb']:.2f}GB",
            f"💾 Disk: {host['disk_used_gb']:.1f}GB / {host['disk_total_gb']:.1f}GB",
            f"🌐 Net: ↓{host['net_rx_kbs']:.1f}KB/s ↑{host['net_tx_kbs']:.1f}KB/s",
            f"⏱️  Uptime: {format_duration(uptime_seconds)} | Ping: {latency_ms}ms",
        ]
    )
