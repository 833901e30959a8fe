#!/usr/bin/env python3
"""
Search Log Analysis Script
Summarizes per-move search metrics written by SearchPlayer
"""

import argparse
import os

import pandas as pd

SUMMARY_COLUMNS = ['battle_id', 'side', 'player', 'won', 'turns', 'timeouts', 'truncated']


def load_data(log_dir='battle_log/one_vs_one'):
    """Load search metrics and battle summaries."""
    metrics_path = os.path.join(log_dir, 'metrics.csv')
    summary_path = os.path.join(log_dir, 'metrics_summary.csv')

    if not os.path.exists(metrics_path):
        print(f"Error: {metrics_path} not found!")
        return None, None

    df = pd.read_csv(metrics_path, keep_default_na=False, na_values={'value': ['']})
    required_columns = ['player', 'phase', 'depth_reached', 'latency_ms', 'fallback_reason']
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        print(f"Error: unexpected log format. Missing columns: {missing_columns}")
        return None, None

    battles = None
    if os.path.exists(summary_path):
        battles = pd.read_csv(summary_path, header=None, names=SUMMARY_COLUMNS)
    return df, battles


def analyze_search_performance(df):
    """Latency, depth and cache behaviour per player."""
    print("\n" + "=" * 60)
    print("SEARCH PERFORMANCE ANALYSIS")
    print("=" * 60)

    stats = df.groupby('player').agg({
        'latency_ms': ['count', 'mean', 'median', 'max'],
        'depth_reached': ['mean', 'max'],
        'nodes_evaluated': 'mean',
        'cache_hits': 'sum',
        'cache_misses': 'sum',
        'near_timeout': ['sum', 'mean'],
    }).round(2)
    stats.columns = ['_'.join(col).strip() for col in stats.columns.values]

    for player in stats.index:
        row = stats.loc[player]
        lookups = row['cache_hits_sum'] + row['cache_misses_sum']
        hit_rate = row['cache_hits_sum'] / lookups if lookups > 0 else 0.0
        metrics = [
            ('Total Moves', int(row['latency_ms_count'])),
            ('Avg Latency (ms)', f"{row['latency_ms_mean']:.1f}"),
            ('Median Latency (ms)', f"{row['latency_ms_median']:.1f}"),
            ('Max Latency (ms)', f"{row['latency_ms_max']:.1f}"),
            ('Avg Depth Reached', f"{row['depth_reached_mean']:.2f}"),
            ('Max Depth Reached', int(row['depth_reached_max'])),
            ('Avg Nodes Evaluated', f"{row['nodes_evaluated_mean']:.0f}"),
            ('Cache Hit Rate', f"{hit_rate:.1%}"),
            ('Near Timeouts', int(row['near_timeout_sum'])),
        ]
        print(f"\n{player}:")
        print(f"{'Metric':<35} {'Value':>15}")
        print("-" * 52)
        for label, value in metrics:
            print(f"{label:<35} {str(value):>15}")


def analyze_phases(df):
    """How decisions ended: completed, deadline, short-circuit or fallback."""
    print("\n" + "=" * 60)
    print("DECISION PHASE ANALYSIS")
    print("=" * 60)
    phases = df.groupby(['player', 'phase']).size().unstack(fill_value=0)
    print(phases)

    fallbacks = df[df['fallback_reason'] != '']
    if len(fallbacks) > 0:
        print("\nFallback Reason Distribution:")
        for reason, count in fallbacks['fallback_reason'].value_counts().items():
            print(f"  {reason}: {count} ({count / len(df) * 100:.1f}% of all moves)")


def analyze_moves(df):
    print("\n" + "=" * 60)
    print("MOVE PATTERN ANALYSIS")
    print("=" * 60)
    top_moves = df['action'].value_counts().head(15)
    for move, count in top_moves.items():
        print(f"  {move}: {count} ({count / len(df) * 100:.1f}%)")


def analyze_battle_outcomes(battles):
    if battles is None:
        return
    print("\n" + "=" * 60)
    print("BATTLE OUTCOME ANALYSIS")
    print("=" * 60)
    print(f"\nTotal Battles: {battles['battle_id'].nunique()}")
    outcome = battles.groupby('player').agg(battles=('won', 'count'), wins=('won', 'sum'), avg_turns=('turns', 'mean'))
    outcome['win_rate'] = (outcome['wins'] / outcome['battles']).round(3)
    print(outcome)


def main():
    parser = argparse.ArgumentParser(description="Analyze search player logs")
    parser.add_argument("--log_dir", type=str, default="battle_log/one_vs_one",
                        help="Directory containing metrics.csv and metrics_summary.csv")
    args = parser.parse_args()

    print("Search Log Analysis")
    print(f"Analyzing: {args.log_dir}")

    df, battles = load_data(args.log_dir)
    if df is None:
        return
    print(f"\nLoaded {len(df)} move records")

    analyze_search_performance(df)
    analyze_phases(df)
    analyze_moves(df)
    analyze_battle_outcomes(battles)


if __name__ == "__main__":
    main()
