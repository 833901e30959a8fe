import argparse
import logging
import os

import numpy as np
from tqdm import tqdm

from pokesearch.arena import play_battle
from pokesearch.config import SearchConfig
from pokesearch.local_sim import LocalSim
from pokesearch.player import GreedyPlayer, RandomPlayer, SearchPlayer
from pokesearch.teams import DEFAULT_TEAMS, available_species, build_battle

bot_choices = ["search", "greedy", "random"]

parser = argparse.ArgumentParser(description="Play local LocalSim battles between two bots")

# Player arguments
parser.add_argument("--player_name", type=str, default="search", choices=bot_choices)
parser.add_argument("--player_team", type=str, nargs="+", default=list(DEFAULT_TEAMS[0]), choices=available_species())

# Opponent arguments
parser.add_argument("--opponent_name", type=str, default="greedy", choices=bot_choices)
parser.add_argument("--opponent_team", type=str, nargs="+", default=list(DEFAULT_TEAMS[1]), choices=available_species())

# Shared arguments
parser.add_argument("--config", type=str, default=None, help="JSON file with SearchConfig overrides")
parser.add_argument("--max_depth", type=int, default=None, help="Search depth cap in plies")
parser.add_argument("--move_time_limit", type=float, default=None, help="Time limit per move in seconds")
parser.add_argument("--log_dir", type=str, default="./battle_log/one_vs_one")
parser.add_argument("--N", type=int, default=1)
parser.add_argument("--seed", type=int, default=0)
parser.add_argument("--max_turns", type=int, default=200)
parser.add_argument("--verbose", action="store_true", help="Show detailed turn-by-turn battle information")

args = parser.parse_args()


def build_config() -> SearchConfig:
    config = SearchConfig.from_json(args.config) if args.config else SearchConfig()
    overrides = {}
    if args.max_depth is not None:
        overrides['max_depth'] = args.max_depth
    if args.move_time_limit is not None:
        overrides['move_time_limit_s'] = args.move_time_limit
    return config.with_overrides(**overrides) if overrides else config


def make_player(name: str, oracle: LocalSim, config: SearchConfig, seed: int, username: str):
    if name == "search":
        return SearchPlayer(oracle, config=config, log_dir=args.log_dir, username=username)
    if name == "greedy":
        return GreedyPlayer(oracle, username=username)
    return RandomPlayer(oracle, seed=seed, username=username)


def record_summary(battle_id: int, names, record, timeouts):
    os.makedirs(args.log_dir, exist_ok=True)
    path = os.path.join(args.log_dir, 'metrics_summary.csv')
    with open(path, 'a', encoding='utf-8') as f:
        for side, name in enumerate(names):
            row = [battle_id, side, name, int(record.winner == side), record.turns, timeouts[side], int(record.truncated)]
            f.write(','.join(map(str, row)) + "\n")


def main():
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    config = build_config()
    oracle = LocalSim()
    names = (f"{args.player_name}_p1", f"{args.opponent_name}_p2")
    players = (
        make_player(args.player_name, oracle, config, args.seed, names[0]),
        make_player(args.opponent_name, oracle, config, args.seed + 1, names[1]),
    )
    rng = np.random.default_rng(args.seed)
    wins = [0, 0]

    pbar = tqdm(total=args.N)
    try:
        for i in range(args.N):
            # Alternate which team each bot pilots to even out matchup bias.
            teams = (args.player_team, args.opponent_team) if i % 2 == 0 else (args.opponent_team, args.player_team)
            record = play_battle(
                oracle,
                players,
                build_battle(*teams),
                seed=int(rng.integers(2**31)),
                max_turns=args.max_turns,
                config=config,
            )
            if record.winner is not None:
                wins[record.winner] += 1
            timeouts = [getattr(p, 'timeouts', 0) for p in players]
            record_summary(i, names, record, timeouts)

            outcome = f"{names[record.winner]} WON" if record.winner is not None else "Draw or truncated"
            tqdm.write(f"Battle {i + 1}: {outcome} in {record.turns} turns")
            pbar.set_description(f"{wins[0] / (i + 1) * 100:.2f}%")
            pbar.update(1)
    finally:
        pbar.close()
        for p in players:
            p.close()

    print(f'\n{"=" * 60}')
    print('FINAL RESULTS:')
    print(f'{"=" * 60}')
    print(f'PLAYER:   {names[0]:20} = {wins[0]}W-{args.N - wins[0]}L ({wins[0] / args.N * 100:.1f}%)')
    print(f'OPPONENT: {names[1]:20} = {wins[1]}W-{args.N - wins[1]}L ({wins[1] / args.N * 100:.1f}%)')


if __name__ == "__main__":
    main()
