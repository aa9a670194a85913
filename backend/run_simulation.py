"""
Run a headless E-Citizens settlement simulation.

Creates a number of player sessions, drives each with a simple scripted
strategy (buy a skill, work, open a company, hire, level up) and runs the
settlement timer for the requested number of ticks. Progress is printed
every few ticks; final player states can be written as JSON save records.
"""

import argparse
import json
import logging
import random
import time
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from catalog import HOUSING_MOOD
from company import CompanyTier
from config import CONFIG
from employees import AITier, recruitment_cost
from persistence import dump_session
from resources import IdentityType, ResourceType
from settlement import PlayerSession, SettlementTick
from talent_market import TalentMarket
from timer import GameTimer

STARTER_SKILL = "dataClean_lv1"
STARTER_JOB = "job_002"
SKILLED_JOB = "job_001"


def create_players(num_players: int, rng: random.Random) -> List[PlayerSession]:
    """Sessions sharing one talent market, alternating identities."""
    market = TalentMarket()
    players = []
    identities = list(IdentityType)
    for i in range(num_players):
        session = PlayerSession(
            player_id=f"player_{i:04d}",
            player_name=f"Citizen {i}",
            identity=identities[i % len(identities)],
            talent_market=market,
        )
        housing = rng.choice(list(HOUSING_MOOD))
        session.set_mood_source("housing", HOUSING_MOOD[housing])
        players.append(session)
    return players


def play_turn(session: PlayerSession, rng: random.Random) -> None:
    """One round of scripted player decisions before a settlement."""
    skills = session.skills
    jobs = session.jobs

    if not skills.has_skill(STARTER_SKILL):
        session.purchase_skill(STARTER_SKILL)

    if skills.is_installed(STARTER_SKILL) and skills.get_instance(STARTER_SKILL).allocated_computing == 0:
        skill = skills.get_skill(STARTER_SKILL)
        skills.allocate_computing(STARTER_SKILL, skill.max_computing_for_100)

    working = {inst.job_id: inst.slot_id for inst in jobs.active_jobs()}
    if skills.is_installed(STARTER_SKILL) and SKILLED_JOB not in working:
        if not jobs.has_free_slot() and STARTER_JOB in working:
            jobs.resign_job(working.pop(STARTER_JOB))
        session.start_job(SKILLED_JOB)
    if not jobs.active:
        session.start_job(STARTER_JOB)

    session.try_level_up()

    small_cost = CONFIG.companies.tier_creation_cost[CompanyTier.SMALL.value]
    if not session.companies.companies and session.pool.virtual_coin >= small_cost * 1.5:
        session.create_company(f"{session.player_name} Works", CompanyTier.SMALL)

    hire_cost = recruitment_cost(AITier.COMMON)
    for company in session.companies.list_companies():
        if not company.is_full and session.pool.virtual_coin >= hire_cost * 3:
            session.companies.hire_ai_employee(company.company_id, AITier.COMMON, rng=rng)
        if company.can_upgrade():
            session.companies.upgrade_company(company.company_id)


def compute_player_stats(players: List[PlayerSession]) -> Dict[str, float]:
    """Vectorized snapshot of player metrics."""
    if not players:
        return {
            "mean_coins": 0.0,
            "median_coins": 0.0,
            "mean_level": 0.0,
            "mean_mood": 0.0,
            "mean_storage_percent": 0.0,
            "companies": 0,
            "active_jobs": 0,
        }

    coins = np.array([p.pool.virtual_coin for p in players], dtype=float)
    levels = np.array([p.level for p in players], dtype=float)
    mood = np.array([p.pool.mood for p in players], dtype=float)
    storage = np.array([p.pool.usage_percent(ResourceType.STORAGE) for p in players], dtype=float)

    return {
        "mean_coins": float(coins.mean()),
        "median_coins": float(np.median(coins)),
        "mean_level": float(levels.mean()),
        "mean_mood": float(mood.mean()),
        "mean_storage_percent": float(storage.mean()),
        "companies": sum(len(p.companies.companies) for p in players),
        "active_jobs": sum(len(p.jobs.active) for p in players),
    }


def main(
    num_players: int = 100,
    num_ticks: int = 288,
    report_every: int = 12,
    seed: int = 42,
    output: Optional[str] = None,
):
    """Run the settlement simulation with configurable size."""
    print("=" * 80)
    print(f"E-CITIZENS SETTLEMENT ({num_players:,} players, {num_ticks} ticks)")
    print("=" * 80)
    print()

    rng = random.Random(seed)
    players = create_players(num_players, rng)
    drivers = [SettlementTick(p, rng=rng) for p in players]

    timer = GameTimer()
    for driver in drivers:
        timer.add_tick_listener(driver.on_tick)
        timer.add_time_listener(driver.advance_downloads)

    print("Tick | Time(s) | Coins(mean) | Coins(med) | Level | Mood  | Storage | Cos | Jobs")
    print("-" * 80)

    start_time = time.time()
    tick_time_history: deque = deque(maxlen=10)
    storage_warnings = 0

    for tick in range(num_ticks):
        tick_start = time.time()
        for player in players:
            play_turn(player, rng)
        timer.advance(timer.interval)
        for driver in drivers:
            if driver.last_report is not None and driver.last_report.storage_full_sources:
                storage_warnings += 1
            driver.session.bus.drain()
        tick_time_history.append(time.time() - tick_start)

        if tick % report_every == 0 or tick == num_ticks - 1:
            stats = compute_player_stats(players)
            avg_tick_time = sum(tick_time_history) / len(tick_time_history)
            print(f"{tick:4d} | {avg_tick_time:7.3f} | {stats['mean_coins']:11.1f} | "
                  f"{stats['median_coins']:10.1f} | {stats['mean_level']:5.2f} | "
                  f"{stats['mean_mood']:5.1f} | {stats['mean_storage_percent']:6.1f}% | "
                  f"{stats['companies']:3d} | {stats['active_jobs']:4d}")

    total_time = time.time() - start_time
    print()
    print("✓ Simulation complete!")
    print(f"  Total time: {total_time:.2f} seconds")
    print(f"  Settlements with storage overflow: {storage_warnings}")
    print()

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        records = [dump_session(p).model_dump(mode="json") for p in players]
        with output_path.open("w") as fh:
            json.dump({"ticks": num_ticks, "players": records}, fh, indent=2)
        print(f"✓ Player states saved to: {output_path}")


def cli(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run E-Citizens settlement simulation.")
    parser.add_argument("--players", type=int, default=100, help="Number of player sessions")
    parser.add_argument("--ticks", type=int, default=288, help="Number of settlements to run (288 = one day)")
    parser.add_argument("--report-every", type=int, default=12, help="Progress print interval (ticks)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for names and strategy")
    parser.add_argument("--output", type=str, default=None, help="Write final player records to this JSON file")
    parser.add_argument("--log-level", type=str, default=CONFIG.debug.log_level, help="Logging level")
    parser.add_argument(
        "--small",
        action="store_true",
        help="Shortcut for a 10-player, 48-tick diagnostic run"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.small:
        args.players = 10
        args.ticks = 48
        args.report_every = 4

    main(
        num_players=args.players,
        num_ticks=args.ticks,
        report_every=max(1, args.report_every),
        seed=args.seed,
        output=args.output,
    )


if __name__ == "__main__":
    cli()
