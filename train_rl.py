#!/usr/bin/env python
"""
Training script for Rheinhessen Q-learning agents.

This script provides a command-line interface for training named tabular
Q-learning agents, either against each other (self-play) or alongside two
heuristic personas (mixed). Agent knowledge is written to one JSON file per
agent and can be loaded again to continue training.

Example usage:
    # Self-play with the four default agents
    python train_rl.py --episodes 1000 --save-dir agents

    # Two learners against the Aggro and Opportunist personas
    python train_rl.py --mode mixed --agents Explorer,Balanced --episodes 500

    # Continue training from saved knowledge
    python train_rl.py --load-dir agents --episodes 500 --save-dir agents

    # Show what saved agents have learned
    python train_rl.py --load-dir agents --insights-only
"""
import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from rheinhessen.rl.agents import AgentRegistry
from rheinhessen.rl.config import DEFAULT_AGENT_NAMES, TrainingConfig
from rheinhessen.rl.training import TrainingSummary, train_agents

console = Console()


def parse_args(argv=None):
    """Parse command-line arguments for training configuration."""
    parser = argparse.ArgumentParser(description="Train Q-learning agents for Rheinhessen")

    # Training configuration
    parser.add_argument("--mode", type=str, default="self-play", choices=["self-play", "mixed"],
                        help="Four learners, or two learners and two personas")
    parser.add_argument("--episodes", type=int, default=100,
                        help="Number of matches to play")
    parser.add_argument("--max-turns", type=int, default=200,
                        help="Turn cap per match")
    parser.add_argument("--target-score", type=int, default=300,
                        help="Score that wins a match")
    parser.add_argument("--agents", type=str, default=",".join(DEFAULT_AGENT_NAMES),
                        help="Comma-separated names of the learners")
    parser.add_argument("--opponents", type=str, default="Aggro,Opportunist",
                        help="Comma-separated personas seated in mixed mode")

    # Saving and loading
    parser.add_argument("--save-dir", type=str, default=None,
                        help="Directory to save agent knowledge")
    parser.add_argument("--save-interval", type=int, default=0,
                        help="Save every N episodes (0 = only at the end)")
    parser.add_argument("--load-dir", type=str, default=None,
                        help="Directory to load agent knowledge from")

    # Output
    parser.add_argument("--insights-only", action="store_true",
                        help="Only print what the loaded agents have learned")
    parser.add_argument("--no-progress", action="store_true",
                        help="Hide the progress bar")
    parser.add_argument("--verbose", action="store_true",
                        help="Print verbose output")

    # Miscellaneous
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed")

    return parser.parse_args(argv)


def create_training_config(args) -> TrainingConfig:
    """Build the training configuration from the command line."""
    return TrainingConfig(
        episodes=args.episodes,
        max_turns=args.max_turns,
        mode=args.mode,
        agent_names=[name.strip() for name in args.agents.split(",") if name.strip()],
        opponents=[name.strip() for name in args.opponents.split(",") if name.strip()],
        target_score=args.target_score,
        seed=args.seed,
        save_interval=args.save_interval,
        save_dir=args.save_dir,
    )


def print_summary(summary: TrainingSummary) -> None:
    """Render the results of a training run as a table."""
    table = Table(title=f"Training results ({summary.episodes} episodes)")
    table.add_column("Seat")
    table.add_column("Games", justify="right")
    table.add_column("Wins", justify="right")
    table.add_column("Win rate", justify="right")
    table.add_column("Mean score", justify="right")
    table.add_column("Mean reward", justify="right")
    table.add_column("Epsilon", justify="right")
    table.add_column("States", justify="right")

    for name in sorted(summary.games):
        epsilon = summary.epsilons.get(name)
        states = summary.state_counts.get(name)
        reward = summary.mean_rewards.get(name)
        table.add_row(
            name,
            str(summary.games[name]),
            str(summary.wins.get(name, 0)),
            f"{summary.win_rate(name):.1%}",
            f"{summary.mean_scores[name]:.1f}",
            f"{reward:.1f}" if reward is not None else "-",
            f"{epsilon:.3f}" if epsilon is not None else "-",
            str(states) if states is not None else "-",
        )

    console.print(table)
    console.print(f"Mean match length: {summary.mean_turns:.1f} turns, "
                  f"turn cap reached {summary.turn_cap_hits} times")


def print_insights(registry: AgentRegistry) -> None:
    for agent in registry:
        for line in agent.insights():
            console.print(line)
        console.print()


def main(argv=None):
    """Main entry point for training."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    registry = AgentRegistry()
    if args.load_dir:
        loaded = registry.load(args.load_dir)
        console.print(f"Loaded {len(loaded)} agents from {args.load_dir}: {', '.join(loaded)}")

    if args.insights_only:
        if not args.load_dir:
            console.print("[red]Error: --insights-only needs --load-dir[/red]")
            return 1
        print_insights(registry)
        return 0

    try:
        config = create_training_config(args)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return 1

    if args.verbose:
        console.print("Training configuration:")
        for key, value in config.to_dict().items():
            console.print(f"  {key}: {value}")

    registry, summary = train_agents(config, registry, progress=not args.no_progress)

    print_summary(summary)
    if args.verbose:
        print_insights(registry)
    if config.save_dir:
        console.print(f"Saved agent knowledge to {config.save_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
