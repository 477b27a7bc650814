from __future__ import annotations

import argparse
import signal
import threading
from typing import Iterable, List, Optional, Sequence, TextIO

from hurl.commands import CommandInterpreter, ControlReader
from hurl.controller import PoolSupervisor
from hurl.dispatcher import Dispatcher
from hurl.log import configure_logging, get_logger
from hurl.models import ResumeCursor, WorkItem
from hurl.requester import Requester
from hurl.settings import (
    DEFAULT_PARALLELISM,
    DEFAULT_RATE,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT,
    SettingsStore,
    parse_duration,
)
from hurl.storage import FanoutStorage, JsonlStorage, LineStorage, StorageBase
from hurl.transports import DEFAULT_IMPERSONATE, Transport, create_transport
from hurl.work_queue import WorkQueue
from hurl.worker import DEFAULT_TICK_SECONDS, Worker


logger = get_logger("hurl")

DRAIN_POLL_SECONDS = 0.1


def run(
    source: Iterable[str],
    skip: int,
    settings: SettingsStore,
    transport: Transport,
    control: Optional[TextIO] = None,
    output: Optional[TextIO] = None,
    results_path: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    abort: Optional[threading.Event] = None,
    tick: float = DEFAULT_TICK_SECONDS,
) -> Optional[ResumeCursor]:
    """Fetch every URL in source and block until all workers have stopped.

    cancel stops dispatching and lets queued and in-flight work drain; abort
    also abandons in-flight attempts. Returns the resume cursor if anything
    was left unfetched: the earliest of the first undispatched line, any
    item still queued when the pool was empty, and any abandoned item.
    """
    cancel = cancel if cancel is not None else threading.Event()

    sinks: list[StorageBase] = [LineStorage(output)]
    if results_path:
        sinks.append(JsonlStorage(results_path))
    storage = FanoutStorage(sinks)

    abandoned: List[WorkItem] = []
    abandoned_lock = threading.Lock()

    def _abandon(item: WorkItem) -> None:
        with abandoned_lock:
            abandoned.append(item)

    work_queue = WorkQueue()
    requester = Requester(transport, settings, cancel=abort)
    supervisor = PoolSupervisor(
        settings,
        lambda index: Worker(index, work_queue, settings, requester, storage, tick=tick, on_abandon=_abandon),
    )
    interpreter = CommandInterpreter(settings, on_change=supervisor.scale)
    reader = ControlReader(control)
    dispatcher = Dispatcher(work_queue, cancel, interpreter=interpreter, commands=reader.commands)

    supervisor.start()
    reader.start()
    cursor: Optional[ResumeCursor] = None
    try:
        try:
            cursor = dispatcher.dispatch(source, skip=skip)
        except BaseException:
            # Nothing more will be dispatched; drain what was queued, then re-raise.
            cancel.set()
            raise
        finally:
            _drain(supervisor, work_queue, interpreter, reader, settings, cancel)
    finally:
        requester.close()
        storage.close()

    unfetched = work_queue.drain() + abandoned
    if unfetched:
        first = min(unfetched, key=lambda item: item.ordinal)
        logger.warning("items_not_fetched", count=len(unfetched), first_line=first.line_index)
        if cursor is None or first.ordinal < cursor.skip:
            cursor = ResumeCursor(line_index=first.line_index, skip=first.ordinal)

    logger.debug("run_complete", enqueued=dispatcher.enqueued, workers_started=supervisor.started_total)
    return cursor


def _drain(
    supervisor: PoolSupervisor,
    work_queue: WorkQueue,
    interpreter: CommandInterpreter,
    reader: ControlReader,
    settings: SettingsStore,
    cancel: threading.Event,
) -> None:
    """Wait for the workers to finish the queue, honouring control commands.

    With no worker alive and items still queued (parallelism 0) this keeps
    waiting for a ``p=`` command until cancel fires.
    """
    stalled = False
    while True:
        interpreter.apply_pending(reader.commands)
        if not supervisor.wait(timeout=DRAIN_POLL_SECONDS):
            continue
        if not len(work_queue) or cancel.is_set():
            return
        if not stalled:
            logger.warning(
                "queue_stalled",
                queued=len(work_queue),
                parallelism=settings.parallelism,
                hint="send p=<n> to start workers",
            )
            stalled = True
        cancel.wait(DRAIN_POLL_SECONDS)


def open_source(path: str) -> TextIO:
    """Open the URL list; undecodable bytes become U+FFFD instead of aborting the run."""
    return open(path, "r", encoding="utf-8", errors="replace")


def _skip_lines(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid skip count: {value!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError("skip count must be >= 0")
    return n


def _duration(value: str) -> float:
    try:
        seconds = parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None
    if seconds <= 0:
        raise argparse.ArgumentTypeError("timeout must be > 0")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hurl",
        description=(
            "Fetch a list of URLs with live-tunable parallelism. While running, type "
            "p=<workers>, r=<req/s per worker>, t=<timeout> or c=<attempts> on stdin."
        ),
    )
    parser.add_argument("url_file", help="Path to a file with one URL per line")
    parser.add_argument("skip", nargs="?", type=_skip_lines, default=0, help="Number of non-blank lines to skip")

    parser.add_argument("-p", "--parallelism", type=int, default=DEFAULT_PARALLELISM, help="Initial number of workers")
    parser.add_argument("-r", "--rate", type=int, default=DEFAULT_RATE, help="Max requests per second, per worker")
    parser.add_argument("-t", "--timeout", type=_duration, default=DEFAULT_TIMEOUT, help="Per-attempt timeout, e.g. 10s")
    parser.add_argument("-c", "--retries", type=int, default=DEFAULT_RETRIES, help="Attempts per URL")

    parser.add_argument("--transport", choices=("requests", "curl"), default="requests", help="HTTP client to use")
    parser.add_argument("--impersonate", default=DEFAULT_IMPERSONATE, help="Browser fingerprint for --transport curl")
    parser.add_argument("--results", default=None, help="Also append results to this JSONL file")

    parser.add_argument("--log-level", default="INFO", help="Diagnostic log level")
    parser.add_argument("--log-json", action="store_true", help="Render diagnostics as JSON")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json=args.log_json)

    try:
        settings = SettingsStore(
            parallelism=args.parallelism,
            rate=args.rate,
            timeout=args.timeout,
            retries=args.retries,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        source = open_source(args.url_file)
    except OSError as exc:
        logger.error("cannot_open_input", path=args.url_file, error=str(exc))
        return 1

    cancel = threading.Event()
    abort = threading.Event()

    def _interrupt(signum, frame) -> None:
        if cancel.is_set():
            logger.warning("interrupt_received", signal=signal.Signals(signum).name, action="abandoning in-flight requests")
            abort.set()
            return
        logger.info("interrupt_received", signal=signal.Signals(signum).name, action="draining")
        cancel.set()

    signal.signal(signal.SIGINT, _interrupt)
    signal.signal(signal.SIGTERM, _interrupt)

    transport = create_transport(args.transport, impersonate=args.impersonate)
    with source:
        cursor = run(
            source,
            args.skip,
            settings,
            transport,
            results_path=args.results,
            cancel=cancel,
            abort=abort,
        )

    if cursor is not None:
        logger.warning(
            "resume",
            line=cursor.line_index,
            skip=cursor.skip,
            hint=f"stopping at line {cursor.line_index}; start with 'hurl {args.url_file} {cursor.skip}' to resume",
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
