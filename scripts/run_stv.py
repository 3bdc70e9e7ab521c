#!/usr/bin/env python3
"""
Run Meek STV tabulation on processed ballot data.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from storage.artifacts import export_tabulation, update_manifest  # noqa: E402
from storage.database import BallotDatabase  # noqa: E402
from tabulation import STVTabulator, TabulationError, TabulationRules  # noqa: E402
from tabulation.cross_check import cross_check_winners  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

STATUS_SYMBOLS = {
    "elected": "🏆",
    "eliminated": "❌",
    "standing": "  ",
}


def build_rules(args) -> TabulationRules:
    overrides = {
        "seats": args.seats,
        "precision": args.precision,
        "tie_break": args.tie_break,
        "continuing_quota": True if args.continuing_quota else None,
        "max_iterations": args.max_iterations,
    }
    if args.rules:
        return TabulationRules.from_json(args.rules, **overrides)
    return TabulationRules.from_dict(
        {key: value for key, value in overrides.items() if value is not None}
    )


def print_rounds(result):
    print("\n=== Round-by-Round Results ===")
    summary = result.get_round_summary()
    meta = {m.round: m for m in result.meta}

    for round_num in sorted(summary["round"].unique()):
        round_data = summary[summary["round"] == round_num]
        print(f"\nRound {round_num}:")
        print(f"Quota: {round_data.iloc[0]['quota']:.1f}")

        for _, row in round_data.sort_values("votes", ascending=False).iterrows():
            status_symbol = STATUS_SYMBOLS.get(row["status"], "  ")
            print(f"  {status_symbol} {row['candidate_name']:25s}: {row['votes']:12.4f} votes")

        if round_data.iloc[0]["exhausted_votes"] > 0:
            print(f"     {'Exhausted':25s}: {round_data.iloc[0]['exhausted_votes']:12.4f} votes")
        if meta[round_num].elected_this_round:
            print(f"     Elected: {', '.join(meta[round_num].elected_this_round)}")
        if meta[round_num].eliminated_this_round:
            print(f"     Eliminated: {', '.join(meta[round_num].eliminated_this_round)}")


def main():
    parser = argparse.ArgumentParser(description="Run Meek STV tabulation")
    parser.add_argument("--db", help="Path to DuckDB database file with processed data")
    parser.add_argument("--rules", help="JSON rules file (command line flags override it)")
    parser.add_argument("--seats", type=int, help="Number of seats to fill (default: 3)")
    parser.add_argument("--precision", type=float, help="Convergence precision (default: 1e-6)")
    parser.add_argument(
        "--tie-break",
        choices=["lexicographic", "random"],
        help="Tie-break policy (default: lexicographic)",
    )
    parser.add_argument(
        "--continuing-quota",
        action="store_true",
        help="Recompute the quota from non-exhausted votes each round",
    )
    parser.add_argument("--max-iterations", type=int, help="Keep factor iteration budget")
    parser.add_argument("--export", help="Directory for stv_rounds/stv_meta parquet files")
    parser.add_argument("--manifest", help="Manifest JSON to update (requires --export)")
    parser.add_argument(
        "--cross-check", action="store_true", help="Compare winners against PyRankVote"
    )

    args = parser.parse_args()
    if not args.rules and args.seats is None:
        args.seats = 3

    if not args.db or not Path(args.db).exists():
        logger.error("Database file required and must exist. Run ingestion first.")
        sys.exit(1)
    if args.manifest and not args.export:
        logger.error("--manifest requires --export")
        sys.exit(1)

    try:
        rules = build_rules(args)

        with BallotDatabase(args.db) as db:
            missing = db.missing_tables()
            if missing:
                logger.error(f"Required tables not found: {', '.join(missing)}")
                sys.exit(1)
            ballot_set = db.load_ballot_set()

        logger.info(f"=== STV Tabulation ({rules.seats} seats) ===")
        tabulator = STVTabulator(ballot_set, rules)
        result = tabulator.run_stv_tabulation().validate()

        print_rounds(result)

        print("\n=== Final Results ===")
        print(f"\nElected ({len(result.winners)} of {rules.seats} seats):")
        final_results = result.get_final_results()
        elected = final_results.set_index("candidate_name").loc[result.winners]
        for i, (name, row) in enumerate(elected.iterrows(), 1):
            print(
                f"  {i}. {name:30s}: {row['final_votes']:10.4f} votes (Round {row['election_round']})"
            )

        if args.cross_check:
            report = cross_check_winners(ballot_set, rules.seats, result)
            print(f"\nPyRankVote winners: {', '.join(report['reference_winners'])}")
            print("✓ Winners agree" if report["winners_match"] else "⚠️  Winners differ")

        if args.export:
            artifacts = export_tabulation(result, args.export)
            print(f"\n✓ Round rows exported to: {artifacts['stv_rounds']}")
            print(f"✓ Meta rows exported to: {artifacts['stv_meta']}")
            if args.manifest:
                update_manifest(args.manifest, result, artifacts)
                print(f"✓ Manifest updated: {args.manifest}")

        print("\n✓ STV tabulation completed successfully")

    except TabulationError as e:
        logger.error(f"Tabulation failed ({type(e).__name__}): {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
