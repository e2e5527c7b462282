# Daemon package
from daemon.capture_source import CaptureSourceAdapter, PlatformHint, StreamHandle, detect_platform
from daemon.config import CompanionConfig
from daemon.frame_sampler import FrameSampler
from daemon.matchup_store import MatchupStore
