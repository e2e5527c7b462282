"""
================================================================================
WR TACTICIAN — COMPANION SESSION
================================================================================
The one application-state object. Created when the service starts, handed by
reference to the HTTP layer, torn down on shutdown. Holds:

  • the matchup store
  • the live sync controller + analysis queue
  • the last analysis result, the error banner, and the busy flags

Nothing in the project keeps matchup or capture state anywhere else.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from agents.analysis import MatchupAnalysisAgent
from agents.recognition import RecognitionAgent
from daemon.analysis_queue import AnalysisQueue
from daemon.capture_source import CaptureSourceAdapter, PlatformHint
from daemon.config import CompanionConfig, build_llm_client
from daemon.frame_sampler import FrameSampler
from daemon.live_sync import LiveSyncController
from daemon.matchup_store import MatchupStore
from schemas.errors import ClientError, NoFrameAvailable
from schemas.models import COMMON_HEROES, ROLES, AnalysisResult, RecognitionResult, SyncStatus

logger = logging.getLogger("wr_tactician.session")

ANALYSIS_FAILED = "分析失败，请检查网络"
RECOGNITION_FAILED = "识别失败"

# Shown on camera-only platforms (phones that cannot share their screen)
CAMERA_GUIDE: List[str] = [
    "把本页面添加到主屏幕，像 App 一样全屏使用。",
    "截图法：游戏中截屏，快速切回本页面，点击右上方图片按钮选择截图上传。",
    "双机党：使用一台手机点击“实况监控”，将摄像头对准玩游戏的 iPad 或另一台手机。",
]


class CompanionSession:
    """
    Usage:
        session = CompanionSession.from_config(CompanionConfig.from_env())
        session.store.set_my_hero("亚索")
        session.store.set_enemy_hero("盖伦")
        await session.request_analysis()
        print(session.view()["analysis"])
    """

    def __init__(
        self,
        config: Optional[CompanionConfig] = None,
        llm_client=None,
        adapter: Optional[CaptureSourceAdapter] = None,
        sampler: Optional[FrameSampler] = None,
        recognizer: Optional[RecognitionAgent] = None,
        analyzer: Optional[MatchupAnalysisAgent] = None,
        store: Optional[MatchupStore] = None,
        platform_hint: Optional[PlatformHint] = None,
    ):
        self.config = config or CompanionConfig()
        self.store = store or MatchupStore()
        self.sampler = sampler or FrameSampler(quality=self.config.jpeg_quality)
        self.recognizer = recognizer or RecognitionAgent(
            llm_client, model=self.config.vision_model, max_tokens=self.config.max_tokens,
        )
        self.analyzer = analyzer or MatchupAnalysisAgent(
            llm_client, model=self.config.coaching_model, max_tokens=self.config.max_tokens,
        )
        self.analysis_queue = AnalysisQueue(self.analyze)
        self.controller = LiveSyncController(
            store=self.store,
            adapter=adapter or CaptureSourceAdapter.from_config(self.config),
            sampler=self.sampler,
            recognizer=self.recognizer,
            analysis_queue=self.analysis_queue,
            config=self.config,
            on_error=self._set_error,
            platform_hint=platform_hint,
        )

        self.analysis: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.loading = False
        self.scanning = False

    @classmethod
    def from_config(cls, config: CompanionConfig) -> "CompanionSession":
        """Build with a real Anthropic client. Raises ConfigError without a key."""
        return cls(config=config, llm_client=build_llm_client(config))

    def _set_error(self, message: Optional[str]):
        self.error = message

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    async def analyze(self):
        """Run one analysis on the current matchup. Needs both heroes."""
        state = self.store.snapshot()
        if not state.is_complete:
            logger.debug("Analysis skipped — both heroes required")
            return

        self.error = None
        self.loading = True
        try:
            self.analysis = await self.analyzer.analyze(state)
        except ClientError as e:
            logger.warning(f"Analysis failed: {e}")
            self.error = ANALYSIS_FAILED
        finally:
            self.loading = False

    async def request_analysis(self):
        """Manual trigger. Shares the queue with live re-analysis."""
        self.analysis_queue.submit()
        await self.analysis_queue.join()

    # =========================================================================
    # UPLOAD RECOGNITION
    # =========================================================================

    async def recognize_upload(self, data: bytes) -> Optional[RecognitionResult]:
        """One-shot recognition of an uploaded screenshot, outside the live loop."""
        self.scanning = True
        self.error = None
        try:
            payload = self.sampler.encode_upload(data)
            result = await self.recognizer.recognize(payload)
        except (NoFrameAvailable, ClientError) as e:
            logger.warning(f"Upload recognition failed: {e}")
            self.error = RECOGNITION_FAILED
            return None
        finally:
            self.scanning = False

        self.store.merge_recognition(
            result,
            filter_sentinels=self.config.upload_filters_sentinels,
            replace_empty_items=True,
            source="upload",
        )
        return result

    # =========================================================================
    # LIVE MODE
    # =========================================================================

    async def start_live(self) -> SyncStatus:
        self.error = None
        return await self.controller.start()

    def stop_live(self) -> SyncStatus:
        return self.controller.stop()

    async def shutdown(self):
        self.controller.detach()
        self.analysis_queue.cancel()
        logger.info("👋 Companion session closed")

    # =========================================================================
    # VIEW
    # =========================================================================

    def view(self) -> Dict[str, Any]:
        """Everything the page renders, camelCase."""
        controller = self.controller
        return {
            "matchup": self.store.snapshot().to_wire(),
            "live": {
                "status": controller.status.value,
                "isLive": controller.is_live,
                "statusLabel": "实况同步" if controller.is_live else "离线模式",
                "platform": controller.platform_hint.value,
                "captureLabel": controller.capture_label,
                "scanning": controller.scanning,
                "stats": dict(controller.stats),
            },
            "loading": self.loading,
            "scanning": self.scanning,
            "error": self.error,
            "analysis": self.analysis.model_dump(by_alias=True) if self.analysis else None,
            "options": {"heroes": list(COMMON_HEROES), "roles": list(ROLES)},
        }
