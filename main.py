"""
Flowpilot - an autonomous tool-calling agent powered by Amazon Bedrock.
Command-line entry point; events are rendered with Rich.
"""

import asyncio
import argparse
import json
import logging
import os
import sys

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.panel import Panel
from rich.prompt import Prompt

from backend import LocalBackend
from bedrock_service import BedrockLLMClient, BedrockService
from config import agent_config, model_config, get_model_name
from orchestrator import (
    AgentEvent, LLMSummarizer, Orchestrator, RunAborted,
    ERROR, FINISHED, STEP_STARTED, THOUGHT, TOOL_CALL_FINISHED, TOOL_CALL_STARTED,
)
from tools import build_default_tools

logger = logging.getLogger(__name__)

console = Console()

TOOL_DANGER = {"write_file", "shell_command"}


def render_event(event: AgentEvent) -> None:
    """Console event sink."""
    data = event.data or {}

    if event.type == STEP_STARTED:
        console.print(f"\n[#484f58]{rich_escape(event.content)}[/#484f58]")

    elif event.type == THOUGHT:
        console.print(f"[italic #8b949e]{rich_escape(event.content)}[/italic #8b949e]")

    elif event.type == TOOL_CALL_STARTED:
        tool_name = data.get("tool_name", "?")
        params = data.get("parameters") or {}
        if tool_name == "shell_command":
            desc = f"$ {params.get('command', '?')}"
        elif "path" in params:
            desc = str(params["path"])
        else:
            desc = json.dumps(params, default=str)[:80]
        color = "#f0883e" if tool_name in TOOL_DANGER else "#3fb950"
        console.print(f"   [{color}]• {rich_escape(tool_name)}[/{color}] [bold]{rich_escape(desc)}[/bold]")

    elif event.type == TOOL_CALL_FINISHED:
        success = data.get("success", False)
        ok = "✓" if success else "✗"
        style = "#6e7681" if success else "#f85149"
        short = event.content[:300] + ("…" if len(event.content) > 300 else "")
        console.print(f"   {ok} {short}", style=style, markup=False, highlight=False)
        if data.get("warning"):
            console.print(f"   [#e3b341]⚠ {rich_escape(data['warning'])}[/#e3b341]")

    elif event.type == ERROR:
        console.print(f"   [bold #f85149]✗ {rich_escape(event.content)}[/bold #f85149]")

    elif event.type == FINISHED:
        if data.get("reason") == "max_steps":
            console.print("\n[#e3b341]Step limit reached[/#e3b341]")


async def ask_user(prompt: str) -> str:
    """Blocking Rich prompt, run off the event loop."""
    console.print(Panel(rich_escape(prompt), border_style="#58a6ff"))
    return await asyncio.to_thread(Prompt.ask, "[bold #58a6ff]>[/bold #58a6ff]", console=console)


def build_orchestrator(args) -> Orchestrator:
    model_id = args.model or model_config.model_id
    service = BedrockService(model_id=model_id)
    llm = BedrockLLMClient(service)
    summarizer = LLMSummarizer(BedrockLLMClient(service, model_id=model_config.summary_model_id or None))

    backend = LocalBackend(args.dir)
    tools = build_default_tools(backend, ask=ask_user, command_timeout=agent_config.command_timeout)

    require_confirmation = agent_config.require_confirmation and not args.no_confirm
    return Orchestrator(
        llm,
        tools,
        confirmation_channel=ask_user if require_confirmation else None,
        require_confirmation=require_confirmation,
        summarizer=summarizer,
        event_sink=render_event,
        max_steps=args.max_steps,
        summarize_threshold=agent_config.summarize_threshold,
        history_token_budget=agent_config.history_token_budget,
        native_tool_calling=model_config.native_tool_calling,
        allow_parallel=args.parallel_ok,
    )


def main():
    parser = argparse.ArgumentParser(
        description="Flowpilot - Autonomous tool-calling agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py "Summarize the README"
  python main.py --dir ~/my-project "Find all TODO comments"
  python main.py --no-confirm --max-steps 10 "List the test files"
        """,
    )
    parser.add_argument("goal", help="What the agent should accomplish")
    parser.add_argument(
        "-d", "--dir",
        default=agent_config.working_directory,
        help="Working directory for the agent (default: current directory)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=agent_config.max_steps,
        help=f"Maximum number of model requests (default: {agent_config.max_steps})",
    )
    parser.add_argument("--no-confirm", action="store_true", help="Accept the final output without asking")
    parser.add_argument(
        "--parallel-ok",
        action="store_true",
        help="Run tool calls in parallel when the model marks them as independent",
    )
    parser.add_argument("--model", default=None, help="Bedrock model ID (default: BEDROCK_MODEL_ID)")

    args = parser.parse_args()

    # Log to file so log lines don't interleave with console output
    logging.basicConfig(
        filename="flowpilot.log",
        level=getattr(logging, agent_config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    args.dir = os.path.abspath(os.path.expanduser(args.dir))
    if not os.path.isdir(args.dir):
        console.print(f"[bold #f85149]Error:[/bold #f85149] {rich_escape(args.dir)} is not a directory")
        sys.exit(1)

    logger.info(f"Starting run in {args.dir}")
    orchestrator = build_orchestrator(args)
    console.print(f"[bold]Flowpilot[/bold] [#6e7681]{rich_escape(get_model_name(args.model or model_config.model_id))} · {rich_escape(args.dir)}[/#6e7681]")

    try:
        output = asyncio.run(orchestrator.run(args.goal))
    except RunAborted as e:
        console.print(f"\n[bold #f85149]Run aborted:[/bold #f85149] {rich_escape(str(e))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[#e3b341]cancelled[/#e3b341]")
        sys.exit(1)

    console.print(Panel(rich_escape(output or ""), title="Final output", border_style="#3fb950"))


if __name__ == "__main__":
    main()
