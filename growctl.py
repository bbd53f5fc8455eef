#!/usr/bin/env python3
"""
growctl.py - grow a file to a target size with concurrent writers (single-file edition)

Features:
- many writer threads append random 36-char [A-Z0-9] lines to one shared file
- a single lock serializes appends so lines are never torn or interleaved
- a monitor thread polls the file size and cancels the writers at the target
- cooperative cancellation through one shared threading.Event
- failures inside threads come back as Result values, never raised across threads
- optional config persisted in growctl.json
"""

import json
import os
import random
import re
import string
import threading
import time
from collections import namedtuple

import click

CONFIG_FILE = "growctl.json"
CONFIG_ENV = "GROWCTL_CONFIG"

ALPHABET = string.ascii_uppercase + string.digits
LINE_LENGTH = 36
MIN_TARGET_SIZE = 1000
MAX_TARGET_SIZE = 20000000
JOIN_TIMEOUT = 2.0

DEFAULT_CONFIG = {
    "workers": 25,
    "poll_interval_ms": 100,
    "flush_each_line": True,
}

# Writer states
RUNNING = "running"
STOPPED = "stopped"
# Monitor states
POLLING = "polling"
DONE = "done"
ABORTED = "aborted"

# Returned by SharedAppender.append once the cancellation signal is set.
CANCELLED = "cancelled"

Result = namedtuple("Result", ["ok", "value", "error"])


class GrowError(Exception):
    """Base class for growctl failures."""


class ResourceOpenFailure(GrowError):
    """The target file could not be opened for appending."""


class IOFailure(GrowError):
    """An append or a size sample failed."""


# ---------------- Config ----------------
def config_path():
    return os.environ.get(CONFIG_ENV) or CONFIG_FILE


def validate_config(cfg):
    """Merge cfg over the defaults and coerce every value. Raises ValueError."""
    out = dict(DEFAULT_CONFIG)
    for key, value in cfg.items():
        if key not in DEFAULT_CONFIG:
            raise ValueError(f"Unknown config key: {key}. Known keys: {list(DEFAULT_CONFIG.keys())}")
        out[key] = value

    for key in ("workers", "poll_interval_ms"):
        raw = out[key]
        if isinstance(raw, bool):
            raise ValueError(f"Config key '{key}' must be an integer")
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Config key '{key}' must be an integer") from e
        if value < 1:
            raise ValueError(f"Config key '{key}' must be >= 1")
        out[key] = value
    out["flush_each_line"] = bool(out["flush_each_line"])
    return out


def load_config(path=None):
    """Read the JSON config if there is one; a missing file means defaults."""
    path = path or config_path()
    if not os.path.exists(path):
        return dict(DEFAULT_CONFIG)
    with open(path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return validate_config(data)


# ---------------- Lines ----------------
def generate(length, rng=None):
    """Return `length` characters drawn uniformly from A-Z0-9.

    Pass a private random.Random per thread; without one a fresh source is
    created for the call, so no random state is ever shared between threads.
    """
    if rng is None:
        rng = random.Random()
    return "".join(rng.choices(ALPHABET, k=length))


# ---------------- Shared output ----------------
class SharedAppender:
    """Owns the one append-mode handle and serializes writes to it."""

    def __init__(self, path, stop=None, flush=True):
        self.path = path
        self.lines_written = 0
        self.bytes_written = 0
        self._stop = stop
        self._flush = flush
        self._lock = threading.Lock()
        self._closed = False
        try:
            self._fh = open(path, "a", encoding="ascii", newline="\n")
        except OSError as e:
            raise ResourceOpenFailure(f"Cannot open '{path}' for appending: {e}") from e

    def append(self, line):
        """Write one whole line. Returns a Result; never raises on I/O errors."""
        with self._lock:
            # Re-checked under the lock: nothing starts after cancellation.
            if self._stop is not None and self._stop.is_set():
                return Result(False, None, CANCELLED)
            if self._closed:
                return Result(False, None, IOFailure(f"Error writing to file: '{self.path}' is closed"))
            record = line + "\n"
            try:
                self._fh.write(record)
            except (OSError, ValueError) as e:
                return Result(False, None, IOFailure(f"Error writing to file: {e}"))
            # buffered now, so close() will still put it on disk
            self.lines_written += 1
            self.bytes_written += len(record)
            if self._flush:
                try:
                    self._fh.flush()
                except (OSError, ValueError) as e:
                    return Result(False, None, IOFailure(f"Error flushing file: {e}"))
            return Result(True, len(record), None)

    def close(self):
        """Close the handle once. Later calls are no-ops."""
        with self._lock:
            if self._closed:
                return Result(True, None, None)
            self._closed = True
            try:
                self._fh.close()
            except OSError as e:
                return Result(False, None, IOFailure(f"Error closing file: {e}"))
            return Result(True, None, None)

    @property
    def closed(self):
        return self._closed


# ---------------- Writers ----------------
class WriterWorker:
    def __init__(self, name, appender, stop, rng=None):
        self.name = name
        self.appender = appender
        self.stop = stop
        self.rng = rng or random.Random()
        self.state = RUNNING
        self.lines = 0
        self.error = None

    def run(self):
        """Append lines until cancelled or until an append fails."""
        while not self.stop.is_set():
            res = self.appender.append(generate(LINE_LENGTH, self.rng))
            if res.ok:
                self.lines += 1
                continue
            if isinstance(res.error, IOFailure):
                self.error = res.error
                click.echo(f"[{self.name}] {res.error}", err=True)
            break
        self.state = STOPPED
        return self.report()

    def report(self):
        return {
            "name": self.name,
            "state": self.state,
            "lines": self.lines,
            "error": str(self.error) if self.error else None,
        }


# ---------------- Monitor ----------------
def sample_size(path):
    """Fresh stat of path, as a Result carrying the size in bytes."""
    try:
        return Result(True, os.stat(path).st_size, None)
    except OSError as e:
        return Result(False, None, IOFailure(f"Error monitoring file: {e}"))


class SizeMonitor:
    def __init__(self, path, target_size, stop, poll_interval=0.1, sampler=None):
        self.path = path
        self.target_size = target_size
        self.stop = stop
        self.poll_interval = poll_interval
        self.state = POLLING
        self.samples = 0
        self.last_size = None
        self.error = None
        self._sampler = sampler

    def run(self):
        """Poll until the target is met (done) or cancellation comes first (aborted).

        A failed stat also cancels the writers, so nothing spins forever
        waiting for a monitor that has gone away.
        """
        sampler = self._sampler or sample_size
        while not self.stop.is_set():
            res = sampler(self.path)
            if not res.ok:
                self.error = res.error
                click.echo(str(res.error), err=True)
                self.stop.set()
                self.state = ABORTED
                return self.state

            self.samples += 1
            self.last_size = res.value
            click.echo(f"Current file size: {res.value}")
            if res.value >= self.target_size:
                click.echo(f"File reached target size: {res.value}")
                self.stop.set()
                self.state = DONE
                return self.state

            # wakes early when cancelled
            self.stop.wait(self.poll_interval)

        self.state = ABORTED
        return self.state


# ---------------- Coordinator ----------------
class GrowManager:
    def __init__(self, path, target_size, config=None, sampler=None):
        self.path = path
        self.target_size = int(target_size)
        self.config = validate_config(config or {})
        self.sampler = sampler
        self.stop = None

    def cancel(self):
        """Ask a running grow to stop. Safe to call any number of times."""
        if self.stop is not None:
            self.stop.set()

    def run(self, worker_count=None):
        """Grow the file with worker_count writers and one monitor, then shut down.

        Raises ResourceOpenFailure before any thread starts if the file
        cannot be opened. Returns a report dict.
        """
        if worker_count is None:
            worker_count = self.config["workers"]
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")

        started = time.monotonic()
        stop = threading.Event()
        appender = SharedAppender(self.path, stop=stop, flush=self.config["flush_each_line"])
        self.stop = stop

        monitor = SizeMonitor(
            self.path,
            self.target_size,
            stop,
            poll_interval=self.config["poll_interval_ms"] / 1000.0,
            sampler=self.sampler,
        )
        workers = [
            WriterWorker(f"writer-{i}", appender, stop) for i in range(worker_count)
        ]
        monitor_thread = threading.Thread(target=monitor.run, name="monitor", daemon=True)
        threads = [threading.Thread(target=w.run, name=w.name, daemon=True) for w in workers]

        running = []
        try:
            monitor_thread.start()
            running.append(monitor_thread)
            for t in threads:
                t.start()
                running.append(t)
            for t in threads:
                t.join()
            stop.set()
            monitor_thread.join()
        finally:
            # Reached on errors too: cancel, then give whatever started
            # a bounded chance to finish before the handle closes.
            stop.set()
            deadline = time.monotonic() + JOIN_TIMEOUT
            for t in running:
                t.join(timeout=max(0.0, deadline - time.monotonic()))
            closed = appender.close()
            if not closed.ok:
                click.echo(str(closed.error), err=True)

        final = sample_size(self.path)
        reports = [w.report() for w in workers]
        return {
            "path": self.path,
            "target_size": self.target_size,
            "final_size": final.value if final.ok else None,
            "target_reached": bool(final.ok and final.value >= self.target_size),
            "lines_written": appender.lines_written,
            "bytes_written": appender.bytes_written,
            "workers": reports,
            "failed_workers": sum(1 for r in reports if r["error"]),
            "monitor_state": monitor.state,
            "monitor_error": str(monitor.error) if monitor.error else None,
            "elapsed": round(time.monotonic() - started, 3),
        }


# ---------------- CLI ----------------
USAGE = (
    "Usage: growctl <filename> <targetSize>\n"
    "       filename: Name of the file to write to.\n"
    f"       targetSize: Size of the file to be created (between {MIN_TARGET_SIZE:,} and {MAX_TARGET_SIZE:,} characters)."
)
HELP_ARGS = ("/?", "-h", "--help")
TARGET_SIZE_RE = re.compile(r"^\s*[+-]?[0-9]+\s*$")


def parse_target_size(raw):
    """Return the target size as an int, or None if it is not a valid size."""
    if not TARGET_SIZE_RE.match(raw):
        return None
    value = int(raw)
    if value < MIN_TARGET_SIZE or value > MAX_TARGET_SIZE:
        return None
    return value


@click.command(context_settings={"ignore_unknown_options": True, "help_option_names": []})
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def cli(args):
    """growctl - grow FILENAME with random lines until it reaches TARGETSIZE bytes"""
    if args and args[0] in HELP_ARGS:
        click.echo(USAGE)
        return
    if len(args) != 2:
        click.echo(USAGE)
        raise SystemExit(1)

    filename, raw_size = args
    target_size = parse_target_size(raw_size)
    if target_size is None:
        click.echo(
            f"Error: The target size must be between {MIN_TARGET_SIZE:,} and {MAX_TARGET_SIZE:,} characters.",
            err=True,
        )
        raise SystemExit(1)

    try:
        cfg = load_config()
    except (OSError, ValueError) as e:
        click.echo(f"An error occurred: {e}", err=True)
        raise SystemExit(1)

    if os.path.exists(filename):
        answer = click.prompt(
            f"The file '{filename}' already exists. Do you want to overwrite it? (y/n)",
            default="",
            show_default=False,
        )
        if answer.strip().lower() != "y":
            click.echo("Operation cancelled.")
            return
        try:
            os.remove(filename)
        except OSError as e:
            click.echo(f"An error occurred: {e}", err=True)
            raise SystemExit(1)

    manager = GrowManager(filename, target_size, cfg)
    try:
        report = manager.run()
    except KeyboardInterrupt:
        click.echo("Interrupted, writers stopped.", err=True)
        raise SystemExit(130)
    except (GrowError, ValueError, RuntimeError) as e:
        click.echo(f"An error occurred: {e}", err=True)
        raise SystemExit(1)

    if report["target_reached"]:
        click.echo(f"Target file size reached. Final file size: {report['final_size']}")
    else:
        click.echo(f"Target file size not reached. Final file size: {report['final_size']}", err=True)
    if report["failed_workers"]:
        click.echo(f"Writers failed: {report['failed_workers']}", err=True)
    if not report["target_reached"] or report["failed_workers"]:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
