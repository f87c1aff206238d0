"""Interactive CLI for the MAKER engine.

A thin REPL: sessions are persisted when --store is given, Ctrl-C during a
run stops the session instead of killing the process.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from maker import CancelToken, EngineConfig, Maker, Session
from maker.config import RoutingMode
from maker.routing import DiversityRouter, PoolRouter
from maker.store import FileSessionStore

MAX_PREVIEW_LEN = 200

# Default model pool for PoolRouter and DiversityRouter; the first entry plans and judges
DEFAULT_MODEL_POOL = [
    "anthropic/claude-sonnet-4",
    "openai/gpt-4o",
    "google/gemini-2.5-pro",
    "mistralai/mistral-large",
]

ROUTER_CHOICES = ["auto", "diversity", "pool"]


def _truncate(text: str, max_len: int = MAX_PREVIEW_LEN) -> str:
    """Truncate text with ellipsis if too long."""
    text = text.replace("\n", " ").strip()
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _print_trace(session: Session) -> None:
    """Print plan, candidates and votes for every completed step."""
    print("=" * 60)
    print("PLAN")
    print("=" * 60)
    for i, step in enumerate(session.plan):
        print(f"  {i + 1}. {step}")
    print()

    for i, record in enumerate(session.completed_steps):
        print("-" * 60)
        print(f"STEP {i + 1}: {_truncate(record.step)}")
        print("-" * 60)
        for j, candidate in enumerate(record.candidates):
            mark = "*" if j == record.winner_index else " "
            print(f" {mark}[{j}] (t={candidate.temperature:.2f}) {_truncate(candidate.text)}")
        print(f"Red flags: {record.red_flags}")
        if record.reason:
            print(f"Judge: {_truncate(record.reason)}")
        print()


def _print_summary(session: Session) -> None:
    usage = session.usage
    print("=" * 60)
    print(f"STATUS: {session.status.value.upper()}  "
          f"({len(session.completed_steps)}/{len(session.plan)} steps)")
    print(f"Usage: {usage.calls} calls, {usage.total_tokens} tokens, ${usage.cost:.4f}")
    print("=" * 60)


def _print_sessions(sessions: list[Session]) -> None:
    if not sessions:
        print("No saved sessions.")
        return
    for session in sessions:
        print(f"{session.id}  {session.status.value:<22} {_truncate(session.task, 60)}")


def _build_router(router_name: str, max_per_vendor: int) -> tuple[RoutingMode, Optional[Any], str]:
    """Build a router based on the name.

    Returns:
        Tuple of (routing_mode, custom_router, display_name)
    """
    if router_name == "diversity":
        router = DiversityRouter(
            model_pool=DEFAULT_MODEL_POOL,
            max_per_vendor=max_per_vendor,
        )
        return RoutingMode.CUSTOM, router, f"diversity (max {max_per_vendor}/vendor)"

    if router_name == "pool":
        router = PoolRouter(model_pool=DEFAULT_MODEL_POOL)
        return RoutingMode.CUSTOM, router, "pool (rotating)"

    return RoutingMode.AUTO, None, "auto (configured model)"


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="MAKER CLI - decompose, generate, vote",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--router",
        choices=ROUTER_CHOICES,
        default="auto",
        help="Router for model selection (default: auto)",
    )
    parser.add_argument(
        "--max-per-vendor",
        type=int,
        default=2,
        metavar="N",
        help="Max candidates per vendor for the diversity router (default: 2)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="FILE",
        help="Markdown config file (Zero-Chat format)",
    )
    parser.add_argument(
        "--store",
        type=Path,
        metavar="DIR",
        help="Directory where sessions are saved",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


async def _run_task(engine: Maker, task: str) -> Session:
    """Run one task, mapping Ctrl-C to the session's cancel token."""
    token = CancelToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    def progress(session: Session) -> None:
        step = min(session.current_step_index + 1, max(len(session.plan), 1))
        print(f"  ... {session.status.value} (step {step}/{len(session.plan) or '?'})")

    try:
        return await engine.run(task, cancel_token=token, on_update=progress)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


async def _repl(engine: Maker, router_display: str) -> None:
    observability = False
    maker_mode = True
    history: list[dict] = []

    while True:
        try:
            user_input = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_input:
            continue

        command = user_input.lower()
        if command == "exit":
            break

        if command == "router":
            print(f"Current router: {router_display}")
            continue

        if command in ("trace on", "trace off"):
            observability = command == "trace on"
            print(f"Trace {'enabled' if observability else 'disabled'}.")
            continue

        if command in ("mode maker", "mode chat"):
            maker_mode = command == "mode maker"
            print(f"Mode: {'MAKER pipeline' if maker_mode else 'direct chat'}")
            continue

        if command == "sessions":
            _print_sessions(engine.load_sessions())
            continue

        if command.startswith(("show ", "delete ")):
            verb, _, session_id = user_input.partition(" ")
            matches = [s for s in engine.load_sessions() if s.id.startswith(session_id.strip())]
            if len(matches) != 1:
                print(f"No unique session matching {session_id.strip()!r}")
                continue
            if verb.lower() == "delete":
                engine.delete_session(matches[0].id)
                print(f"Deleted {matches[0].id}")
            else:
                _print_trace(matches[0])
                _print_summary(matches[0])
                print(matches[0].content)
            continue

        try:
            if not maker_mode:
                reply = await engine.chat(user_input, history)
                history.append({"role": "user", "content": user_input})
                history.append({"role": "model", "content": reply.text})
                print(reply.text)
                print()
                continue

            session = await _run_task(engine, user_input)
            if observability:
                print()
                _print_trace(session)
            _print_summary(session)
            print(session.content)
            print()

        except Exception as e:
            print(f"Error: {e}")
            print()


def main(argv: Optional[list[str]] = None) -> None:
    """Run the MAKER CLI REPL."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    routing_mode, custom_router, router_display = _build_router(
        args.router, args.max_per_vendor
    )

    print("MAKER v1.0")
    print(f"Router: {router_display}")
    print("Type 'exit' to quit, 'mode maker|chat', 'trace on/off', 'sessions', "
          "'show <id>', 'delete <id>'")
    print()

    api_key = os.environ.get("OPENROUTER_KEY")
    if not api_key:
        print("Error: OPENROUTER_KEY environment variable not set")
        print("Set it with: export OPENROUTER_KEY=your-api-key")
        sys.exit(1)

    overrides: dict[str, Any] = {
        "openrouter_api_key": api_key,
        "routing_mode": routing_mode,
        "custom_router": custom_router,
    }
    if args.config:
        config = EngineConfig.from_markdown(
            args.config.read_text(encoding="utf-8"), **overrides
        )
    else:
        config = EngineConfig(**overrides)

    store = FileSessionStore(args.store) if args.store else None
    engine = Maker(config=config, store=store)

    if store is not None:
        # Sanitizes sessions a previous crash left mid-pipeline
        sessions = engine.load_sessions()
        print(f"Loaded {len(sessions)} saved sessions from {args.store}")

    async def _main() -> None:
        try:
            await _repl(engine, router_display)
        finally:
            await engine.aclose()

    asyncio.run(_main())


if __name__ == "__main__":
    main()
