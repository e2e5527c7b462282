"""
================================================================================
WR TACTICIAN — SERVICE + CLI
================================================================================
Single entry point:

  python main.py serve                                  # 🎯 local page + live sync
  python main.py analyze --hero 亚索 --enemy 盖伦 --role 上路 --items "水银之靴,守护者之铠"
  python main.py recognize --image screenshot.png       # one-shot screenshot read

Configuration comes from the environment (see daemon/config.py), with an
optional .env file next to this script.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from daemon.config import CompanionConfig, build_llm_client, load_env_file
from schemas.errors import CompanionError, ConfigError
from schemas.models import ROLES

LOG_DIR = Path.home() / ".wr_tactician" / "logs"

logger = logging.getLogger("wr_tactician")


def setup_logging(level: str = "INFO"):
    """Console + file logging."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(LOG_DIR / "tactician.log", encoding="utf-8"),
        ]
    )


def load_config() -> CompanionConfig:
    loaded = load_env_file(PROJECT_ROOT / ".env")
    config = CompanionConfig.from_env()
    setup_logging(config.log_level)
    if loaded:
        logger.debug(f"Loaded {loaded} keys from .env")
    return config


# =============================================================================
# SERVER MODE
# =============================================================================

def cmd_serve(args, config: CompanionConfig):
    """Start the local page + API with live sync available."""
    import uvicorn
    from daemon.companion import CompanionSession
    from server.app import create_app

    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    session = CompanionSession.from_config(config)
    app = create_app(session)

    print()
    print("=" * 60)
    print("  ⚔️  WR TACTICIAN")
    print("=" * 60)
    print(f"  🌐 Page:      http://{config.host}:{config.port}/")
    print(f"  📷 Capture:   {session.controller.platform_hint.value} ({session.controller.capture_label})")
    print(f"  ⏱️  Sync:      every {config.sync_interval:.0f}s after {config.warmup_delay:.0f}s warm-up")
    print(f"  🧠 Models:    {config.vision_model} / {config.coaching_model}")
    print("=" * 60)
    print()

    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


# =============================================================================
# CLI ANALYZE
# =============================================================================

def cmd_analyze(args, config: CompanionConfig):
    """Analyze one matchup from the command line."""
    from agents.analysis import MatchupAnalysisAgent
    from schemas.models import MatchupState, Role

    items = [i.strip() for i in args.items.split(",") if i.strip()] if args.items else []
    state = MatchupState(
        my_hero=args.hero.strip(),
        my_role=Role(args.role),
        enemy_hero=args.enemy.strip(),
        enemy_items=items,
    )

    agent = MatchupAnalysisAgent(
        build_llm_client(config), model=config.coaching_model, max_tokens=config.max_tokens,
    )

    logger.info(f"🚀 Analyzing {state.my_hero} ({state.my_role.value}) vs {state.enemy_hero}...")
    start = time.time()
    result = asyncio.run(agent.analyze(state))
    elapsed = (time.time() - start) * 1000

    if args.json:
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return

    print("\n" + "=" * 60)
    print(f"  {state.my_hero} vs {state.enemy_hero}")
    print("=" * 60)
    print(f"\n📋 战术指导报告\n  {result.matchup_analysis}")
    print("\n🛡️  推荐出装")
    for rec in result.recommended_items:
        print(f"  • {rec.item}: {rec.reason}")
    print("\n⚔️  针对连招")
    for combo in result.combos:
        print(f"  • {combo.sequence}  ({combo.description})")
    print("\n💡 实战贴士")
    for tip in result.strategy_tips:
        print(f"  • {tip}")
    print(f"\n⚡ {elapsed:.0f}ms")


# =============================================================================
# CLI RECOGNIZE
# =============================================================================

def cmd_recognize(args, config: CompanionConfig):
    """Read heroes and enemy items off a saved screenshot."""
    from agents.recognition import RecognitionAgent
    from daemon.frame_sampler import FrameSampler

    sampler = FrameSampler(quality=config.jpeg_quality)
    payload = sampler.encode_upload(Path(args.image).read_bytes())

    agent = RecognitionAgent(
        build_llm_client(config), model=config.vision_model, max_tokens=config.max_tokens,
    )
    result = asyncio.run(agent.recognize(payload))

    if args.json:
        print(json.dumps(result.model_dump(by_alias=True), indent=2, ensure_ascii=False))
        return

    print(f"  我方英雄: {result.my_hero}")
    print(f"  敌方英雄: {result.enemy_hero}")
    print(f"  敌方出装: {', '.join(result.enemy_items) or '-'}")


# =============================================================================
# MAIN
# =============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="⚔️ WR Tactician — live Wild Rift matchup coach",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    serve_p = sub.add_parser("serve", help="Start the local page + API")
    serve_p.add_argument("--host", type=str, help="Bind address (default from WR_HOST)")
    serve_p.add_argument("--port", type=int, help="Port (default from WR_PORT)")

    analyze_p = sub.add_parser("analyze", help="Analyze one matchup")
    analyze_p.add_argument("--hero", required=True, help="Your hero")
    analyze_p.add_argument("--enemy", required=True, help="Lane opponent")
    analyze_p.add_argument("--role", default="上路", choices=ROLES)
    analyze_p.add_argument("--items", type=str, help="Comma-separated enemy items")
    analyze_p.add_argument("--json", action="store_true", help="Output raw JSON")

    recognize_p = sub.add_parser("recognize", help="Recognize a screenshot")
    recognize_p.add_argument("--image", required=True, help="Screenshot path")
    recognize_p.add_argument("--json", action="store_true", help="Output raw JSON")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        print("\n💡 Quick start: python main.py serve")
        return 0

    commands = {
        "serve": cmd_serve,
        "analyze": cmd_analyze,
        "recognize": cmd_recognize,
    }

    try:
        config = load_config()
        commands[args.command](args, config)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        return 1
    except CompanionError as e:
        print(f"❌ {e.user_message} ({e})")
        return 1
    except KeyboardInterrupt:
        print("\n👋 Bye")
    return 0


if __name__ == "__main__":
    sys.exit(main())
