#!/usr/bin/env python3
"""
Optuna search for Glicko-2 volatility and starting deviation.

Each trial replays the whole match log period by period in memory and
scores the probabilities it assigned to each game's winner. The early part
of the log only warms ratings up; the objective is the log-loss on the
validation slice, and a held-out test slice guards activation.

Usage examples:
    python scripts/tune_volatility.py --n-trials 100

    # Tune and activate if the test log-loss beats the active set
    python scripts/tune_volatility.py --n-trials 200 --activate-best --min-improvement 0.001
"""

from __future__ import annotations

import argparse
import math
import sys
from dataclasses import asdict, replace
from datetime import UTC, datetime
from pathlib import Path

import optuna

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ratingupdate.config import settings
from ratingupdate.db.session import get_session
from ratingupdate.rating.constants import GLICKO_SCALE
from ratingupdate.rating.glicko import RatingParams
from ratingupdate.rating.params_store import get_active_rating_params, persist_rating_params
from ratingupdate.rating.replay import compute_log_loss, load_games_for_replay, replay_periods
from ratingupdate.rating.updater import GameRow


def build_split(n_games: int, warmup_ratio: float, test_ratio: float) -> dict[str, int]:
    if n_games < 100:
        raise ValueError(f"Need at least 100 games for a stable split ({n_games} found)")
    if warmup_ratio < 0 or test_ratio <= 0 or (warmup_ratio + test_ratio) >= 0.9:
        raise ValueError("warmup_ratio must be >= 0, test_ratio > 0, and their sum < 0.9")

    warmup_end = int(n_games * warmup_ratio)
    val_end = int(n_games * (1.0 - test_ratio))
    return {"warmup_end": warmup_end, "val_end": val_end, "n_total": n_games}


def evaluate_params(
    params: RatingParams,
    games: list[GameRow],
    split: dict[str, int],
    period_seconds: int,
) -> dict[str, float]:
    probs = replay_periods(games, params, period_seconds)
    return {
        "val": compute_log_loss(probs[split["warmup_end"]:split["val_end"]]),
        "test": compute_log_loss(probs[split["val_end"]:]),
    }


def params_from_trial(trial: optuna.Trial, base: RatingParams) -> RatingParams:
    # Searched on the display scale, which is easier to reason about
    volatility = trial.suggest_float("volatility_display", 1.0, 40.0)
    initial_deviation = trial.suggest_float("initial_deviation_display", 150.0, 350.0)
    return replace(
        base,
        volatility=volatility / GLICKO_SCALE,
        initial_deviation=min(initial_deviation / GLICKO_SCALE, base.max_deviation),
    )


def print_metrics(label: str, metrics: dict[str, float]) -> None:
    print(f"  {label}: val={metrics['val']:.6f} test={metrics['test']:.6f}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Tune Glicko-2 volatility with Optuna")
    parser.add_argument("--n-trials", type=int, default=100, help="Number of Optuna trials")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for the TPE sampler")
    parser.add_argument("--n-startup-trials", type=int, default=20, help="Random startup trials before TPE")
    parser.add_argument("--since", type=int, default=None, help="Only replay games after this unix time")
    parser.add_argument("--warmup-ratio", type=float, default=0.5, help="Leading share of games used only for warm-up")
    parser.add_argument("--test-ratio", type=float, default=0.2, help="Trailing share of games held out for test")
    parser.add_argument("--activate-best", action="store_true", help="Persist and activate the best params")
    parser.add_argument(
        "--min-improvement",
        type=float,
        default=0.0,
        help="Minimum test log-loss improvement vs active params required for activation",
    )
    args = parser.parse_args()

    print("Loading games from database...")
    with get_session() as session:
        games = load_games_for_replay(session, since=args.since)
        active_params, active_version = get_active_rating_params(session)

    if not games:
        print("ERROR: No rateable games found in database")
        sys.exit(1)
    print(f"Loaded {len(games)} games")

    try:
        split = build_split(len(games), args.warmup_ratio, args.test_ratio)
    except ValueError as exc:
        print(f"ERROR: {exc}")
        sys.exit(2)

    period = settings.rating_period_seconds
    active_metrics = evaluate_params(active_params, games, split, period)
    print()
    print("Baselines:")
    print_metrics(f"active ({active_version})", active_metrics)
    print(f"  random baseline: {-math.log(0.5):.6f}")

    def objective(trial: optuna.Trial) -> float:
        metrics = evaluate_params(params_from_trial(trial, active_params), games, split, period)
        trial.set_user_attr("test_log_loss", metrics["test"])
        return metrics["val"]

    sampler = optuna.samplers.TPESampler(seed=args.seed, n_startup_trials=args.n_startup_trials)
    study = optuna.create_study(direction="minimize", sampler=sampler)
    study.optimize(objective, n_trials=args.n_trials, show_progress_bar=True)

    best_params = params_from_trial(optuna.trial.FixedTrial(study.best_trial.params), active_params)
    best_metrics = evaluate_params(best_params, games, split, period)

    print()
    print("Best trial:")
    print_metrics("best", best_metrics)
    improvement = active_metrics["test"] - best_metrics["test"]
    print(f"  improvement vs active (test): {improvement:.6f}")
    print()
    print("Best parameter values:")
    for key, value in sorted(asdict(best_params).items()):
        print(f"  {key}: {value:.6f}")

    if args.activate_best:
        if improvement < args.min_improvement:
            print(
                f"Skipping activation: test improvement ({improvement:.6f}) "
                f"is below --min-improvement ({args.min_improvement:.6f})"
            )
        else:
            run_name = f"optuna-{datetime.now(UTC).strftime('%Y%m%d-%H%M%S')}"
            with get_session() as session:
                record = persist_rating_params(
                    session=session,
                    name=run_name,
                    params=best_params,
                    source="optuna",
                    activate=True,
                )
                print(f"Activated rating params set: {record.name}")

    print("Done.")


if __name__ == "__main__":
    main()
