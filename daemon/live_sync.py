"""
================================================================================
WR TACTICIAN — LIVE SYNC CONTROLLER
================================================================================
Keeps the matchup in sync with what is on screen while live mode is on.

  IDLE ──start()──▶ STARTING ──stream acquired──▶ LIVE
    ▲                   │ capture refused              │ stop() / track ended
    └───────────────────┴──────── STOPPING ◀───────────┘

While LIVE:
  +1s   first recognition cycle (stream warm-up)
  /15s  recognition cycle: sample frame → recognize → merge (sentinels skipped)
  any hero change / item-count change → one queued analysis

A failed cycle is logged and the loop carries on; the next tick is the retry.
Stopping releases the device and cancels both timers before returning.
Requests already in flight are not cancelled and still merge when they land.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Set

from daemon.capture_source import CaptureSourceAdapter, PlatformHint, StreamHandle, detect_platform
from daemon.matchup_store import MatchupStore
from schemas.errors import CaptureError, ClientError, NoFrameAvailable
from schemas.models import MatchupChange, SyncStatus

logger = logging.getLogger("wr_tactician.live")

CAMERA_START_FAILED = "无法访问相机，请检查设置"
DISPLAY_START_FAILED = "无法开启屏幕共享"


class LiveSyncController:
    """
    Usage:
        controller = LiveSyncController(store, adapter, sampler, recognizer, queue, config)
        await controller.start()     # → SyncStatus.LIVE, or IDLE + on_error(message)
        ...
        controller.stop()            # idempotent
    """

    def __init__(
        self,
        store: MatchupStore,
        adapter: CaptureSourceAdapter,
        sampler,
        recognizer,
        analysis_queue,
        config,
        on_error: Optional[Callable[[str], None]] = None,
        platform_hint: Optional[PlatformHint] = None,
    ):
        self.store = store
        self.adapter = adapter
        self.sampler = sampler
        self.recognizer = recognizer
        self.analysis_queue = analysis_queue
        self.config = config
        self.platform_hint = platform_hint or detect_platform(config.capture_mode)
        self._on_error = on_error or (lambda message: None)

        self.status = SyncStatus.IDLE
        self._cycles_in_flight = 0
        self._stream: Optional[StreamHandle] = None
        self._warmup_task: Optional[asyncio.Task] = None
        self._interval_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.stats: Dict = {
            "cycles": 0,
            "cycle_failures": 0,
            "merges": 0,
            "analyses_queued": 0,
            "last_cycle": None,
        }

        self._unsubscribe = store.subscribe(self._on_matchup_change)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def stream(self) -> Optional[StreamHandle]:
        return self._stream

    @property
    def is_live(self) -> bool:
        return self.status is SyncStatus.LIVE

    @property
    def scanning(self) -> bool:
        # Cycles overlap, so busy until the last one in flight lands
        return self._cycles_in_flight > 0

    @property
    def has_timers(self) -> bool:
        return any(t is not None and not t.done() for t in (self._warmup_task, self._interval_task))

    @property
    def capture_label(self) -> str:
        return "实况监控" if self.platform_hint is PlatformHint.CAMERA_ONLY else "自动抓取"

    @property
    def start_failed_message(self) -> str:
        if self.platform_hint is PlatformHint.CAMERA_ONLY:
            return CAMERA_START_FAILED
        return DISPLAY_START_FAILED

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> SyncStatus:
        if self.status is not SyncStatus.IDLE:
            logger.debug(f"start() ignored in state {self.status.value}")
            return self.status

        self.status = SyncStatus.STARTING
        self._loop = asyncio.get_running_loop()
        logger.info(f"▶️  Starting live sync ({self.platform_hint.value})")

        try:
            stream = await self.adapter.acquire(self.platform_hint)
        except CaptureError as e:
            self.status = SyncStatus.IDLE
            logger.warning(f"Capture refused: {e} — back to idle")
            self._on_error(self.start_failed_message)
            return self.status

        if self.status is not SyncStatus.STARTING:
            # stop() landed while the permission prompt was up
            stream.stop()
            return self.status

        self._stream = stream
        stream.on_ended(lambda: self._on_track_ended(stream))
        self.status = SyncStatus.LIVE

        self._warmup_task = self._loop.create_task(self._warmup())
        self._interval_task = self._loop.create_task(self._tick_forever())
        logger.info(
            f"🟢 Live sync running — first cycle in {self.config.warmup_delay}s, "
            f"then every {self.config.sync_interval}s"
        )
        return self.status

    def stop(self) -> SyncStatus:
        """Release the stream and cancel timers. Safe to call any number of times."""
        if self.status is SyncStatus.IDLE and self._stream is None and not self.has_timers:
            return self.status

        self.status = SyncStatus.STOPPING
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()

        for task in (self._warmup_task, self._interval_task):
            if task is not None and not task.done():
                task.cancel()
        self._warmup_task = None
        self._interval_task = None

        self.status = SyncStatus.IDLE
        logger.info("⏹️  Live sync stopped")
        return self.status

    def _on_track_ended(self, stream: StreamHandle):
        """End-of-stream hook. May fire on a capture worker thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self._stop_if_current(stream)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._stop_if_current(stream)
        else:
            loop.call_soon_threadsafe(self._stop_if_current, stream)

    def _stop_if_current(self, stream: StreamHandle):
        # A late hook from an old stream must not stop a newer session
        if self._stream is stream:
            logger.info("Stream ended outside the app — stopping live sync")
            self.stop()

    def detach(self):
        """Stop and stop observing the store."""
        self.stop()
        self._unsubscribe()

    # =========================================================================
    # TIMERS
    # =========================================================================

    async def _warmup(self):
        await asyncio.sleep(self.config.warmup_delay)
        self._spawn_cycle()

    async def _tick_forever(self):
        while self.status is SyncStatus.LIVE:
            await asyncio.sleep(self.config.sync_interval)
            if self.status is not SyncStatus.LIVE:
                break
            self._spawn_cycle()

    def _spawn_cycle(self):
        # Cycles run as their own tasks so a slow model call never delays the next tick
        task = self._loop.create_task(self.run_cycle())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)

    async def wait_for_cycles(self):
        """Await recognition cycles already in flight."""
        while self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)

    # =========================================================================
    # RECOGNITION CYCLE
    # =========================================================================

    async def run_cycle(self) -> bool:
        """One capture → recognize → merge. Returns True when a result was merged."""
        stream = self._stream
        if self.status is not SyncStatus.LIVE or stream is None:
            return False

        self.stats["cycles"] += 1
        self.stats["last_cycle"] = time.time()
        self._cycles_in_flight += 1
        try:
            payload = await self.sampler.capture(stream)
            result = await self.recognizer.recognize(payload)
        except NoFrameAvailable as e:
            logger.debug(f"Cycle skipped: {e}")
            return False
        except ClientError as e:
            self.stats["cycle_failures"] += 1
            logger.warning(f"Auto recognition failed: {e}")
            return False
        except Exception as e:
            self.stats["cycle_failures"] += 1
            logger.error(f"Auto recognition crashed: {e}", exc_info=True)
            return False
        finally:
            self._cycles_in_flight -= 1

        self.store.merge_recognition(result, filter_sentinels=True, source="live")
        self.stats["merges"] += 1
        return True

    # =========================================================================
    # CHANGE → ANALYSIS
    # =========================================================================

    def _on_matchup_change(self, change: MatchupChange):
        if self.status is not SyncStatus.LIVE:
            return
        if not change.triggers_analysis or not change.current.is_complete:
            return
        if self.analysis_queue.submit():
            self.stats["analyses_queued"] += 1
