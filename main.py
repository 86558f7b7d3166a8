"""storycast dev launcher. Runs one generation locally against real providers."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from storycast.app import create_runtime
from storycast.config import Settings, load_settings
from storycast.costs import estimate_cost, format_estimate
from storycast.pipeline.formats import EpisodeRequest
from storycast.pipeline.orchestrator import GenerationProgress


def _print_progress(progress: GenerationProgress) -> None:
    print(f"[{progress.percent:3d}%] {progress.stage}: {progress.message}")


async def _episode(settings: Settings, args: argparse.Namespace) -> None:
    runtime = create_runtime(settings)
    request = EpisodeRequest(
        format=args.format,
        topic=args.topic,
        era=args.era,
        target_duration=args.duration,
        guest_name=args.guest,
        question=args.question,
        angle=args.angle,
    )
    episode = await runtime.generate_episode(request, on_progress=_print_progress)
    print(f"{episode.title} → {episode.audio.url if episode.audio else '(no audio)'}")


async def _adventure(settings: Settings, args: argparse.Namespace) -> None:
    runtime = create_runtime(settings)
    graph = await runtime.create_adventure(args.concept, args.context, eager=args.eager)
    print(f"{graph.title} ({len(graph.nodes)} nodes) id={graph.id}")


async def _play(settings: Settings, args: argparse.Namespace) -> None:
    runtime = create_runtime(settings)
    journey, node = await runtime.start(args.adventure_id, args.listener)
    while True:
        print(f"\n== {node.title} ==")
        if node.audio:
            print(f"   audio: {node.audio.url}")
        if journey.is_completed or not node.choices:
            print("The end.")
            return
        for i, choice in enumerate(node.choices, 1):
            print(f"  {i}. {choice.text}")
        picked = input("> ").strip()
        if not picked.isdigit() or not 1 <= int(picked) <= len(node.choices):
            print("Pick one of the numbers above.")
            continue
        journey, node = await runtime.choose(journey.id, node.choices[int(picked) - 1].id)


def main():
    parser = argparse.ArgumentParser(description="storycast dev launcher")
    parser.add_argument("--env-file", type=Path, default=None,
                        help="Environment file (default: ./.env)")
    sub = parser.add_subparsers(dest="command", required=True)

    ep = sub.add_parser("episode", help="Generate one linear episode")
    ep.add_argument("topic")
    ep.add_argument("--format", choices=["narrative", "interview", "debate"], default="narrative")
    ep.add_argument("--era", default=None)
    ep.add_argument("--duration", type=int, default=1200, help="Target length in seconds")
    ep.add_argument("--guest", default=None, help="Interview guest")
    ep.add_argument("--question", default=None, help="Debate question")
    ep.add_argument("--angle", default=None)

    adv = sub.add_parser("adventure", help="Build a branching adventure")
    adv.add_argument("concept")
    adv.add_argument("--context", default="", help="Historical context")
    adv.add_argument("--eager", action="store_true", help="Narrate every node now")

    play = sub.add_parser("play", help="Play a stored adventure in the terminal")
    play.add_argument("adventure_id")
    play.add_argument("--listener", default="local")

    cost = sub.add_parser("cost", help="Estimate generation cost")
    cost.add_argument("format", choices=["narrative", "interview", "debate", "adventure"])
    cost.add_argument("--nodes", type=int, default=10)

    args = parser.parse_args()

    settings = load_settings(args.env_file)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "cost":
        print(format_estimate(estimate_cost(args.format, args.nodes)))
        return

    commands = {"episode": _episode, "adventure": _adventure, "play": _play}
    try:
        asyncio.run(commands[args.command](settings, args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
