"""Bulk URL fetcher with a live-tunable worker pool.

Reads a list of URLs, issues GET requests through a pool of worker threads
and accepts control commands on stdin to change parallelism, per-worker
rate, per-attempt timeout and retry budget while running.

Key modules:
    settings        -- SettingsStore and the Setting capability (integer / duration)
    commands        -- CommandInterpreter and ControlReader for live control
    requester       -- Requester: retry budget with per-attempt deadlines
    transports      -- Transport over requests or curl_cffi
    rate_limiter    -- RateLimiter for per-worker throttling
    work_queue      -- WorkQueue, a bounded closable hand-off queue
    worker          -- Worker thread loop and its states
    controller      -- PoolSupervisor for spawning and lazy shrink
    dispatcher      -- Dispatcher: source lines to queue, skip and resume
    storage         -- result sinks (stdout lines, JSON Lines file)
    models          -- WorkItem, FetchResult, SettingsSnapshot, ResumeCursor
    errors          -- exception hierarchy
    log             -- structlog configuration for diagnostics
"""

__version__ = "0.1.0"
