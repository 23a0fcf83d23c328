"""Ballot CLI — command-line interface for a persisted ballot.

Usage:
    python -m ballot.cli init --admin owner
    python -m ballot.cli --caller owner register-voter alice
    python -m ballot.cli --caller owner open-proposals
    python -m ballot.cli --caller alice submit-proposal "Eating"
    python -m ballot.cli --caller owner close-proposals
    python -m ballot.cli --caller owner open-voting
    python -m ballot.cli --caller alice cast-vote 1
    python -m ballot.cli --caller owner close-voting
    python -m ballot.cli --caller owner tally
    python -m ballot.cli winner
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from ballot.config import BallotSettings
from ballot.persistence.event_log import EventLog
from ballot.persistence.state_store import StateStore
from ballot.service import BallotService, ServiceResult


logger = logging.getLogger(__name__)


def _paths(args: argparse.Namespace) -> tuple[StateStore, EventLog]:
    data_dir: Path = args.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    settings = BallotSettings(data_dir=data_dir)
    return (
        StateStore(settings.state_path),
        EventLog(storage_path=settings.events_path),
    )


def _load_service(args: argparse.Namespace) -> BallotService:
    """Resume the ballot stored under --data-dir."""
    state_store, event_log = _paths(args)
    return BallotService.load(state_store, event_log=event_log)


def _require_caller(args: argparse.Namespace) -> str:
    if not args.caller:
        raise ValueError("--caller is required for this command")
    return args.caller


def _report(result: ServiceResult, message: Optional[str] = None) -> int:
    if result.success:
        if message is not None:
            print(message)
        else:
            print(json.dumps(result.data, indent=2, sort_keys=True))
        warning = result.data.get("warning")
        if warning:
            print(f"Warning: {warning}", file=sys.stderr)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _print_json(data: Any) -> int:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    state_store, event_log = _paths(args)
    service = BallotService.deploy(args.admin, event_log=event_log, state_store=state_store)
    print(f"Deployed ballot administered by {service.state.administrator}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    return _print_json(_load_service(args).status())


def cmd_register_voter(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.register_voter(_require_caller(args), args.address)
    return _report(result, f"Registered voter: {args.address}")


def cmd_get_voter(args: argparse.Namespace) -> int:
    service = _load_service(args)
    return _report(service.get_voter(_require_caller(args), args.address))


def cmd_submit_proposal(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.submit_proposal(_require_caller(args), args.description)
    if result.success:
        return _report(result, f"Registered proposal: {result.data['proposal_id']}")
    return _report(result)


def cmd_get_proposal(args: argparse.Namespace) -> int:
    service = _load_service(args)
    return _report(service.get_proposal(_require_caller(args), args.proposal_id))


def cmd_cast_vote(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.cast_vote(_require_caller(args), args.proposal_id)
    return _report(result, f"Vote cast for proposal {args.proposal_id}")


def _transition_command(method_name: str):
    def handler(args: argparse.Namespace) -> int:
        service = _load_service(args)
        result = getattr(service, method_name)(_require_caller(args))
        if result.success:
            return _report(result, f"Workflow status: {result.data['workflow_status']}")
        return _report(result)
    handler.__name__ = f"cmd_{method_name}"
    return handler


cmd_open_proposals = _transition_command("open_proposals_registration")
cmd_close_proposals = _transition_command("close_proposals_registration")
cmd_open_voting = _transition_command("open_voting_session")
cmd_close_voting = _transition_command("close_voting_session")


def cmd_tally(args: argparse.Namespace) -> int:
    service = _load_service(args)
    result = service.tally_votes(_require_caller(args))
    if result.success:
        return _report(result, f"Winning proposal: {result.data['winning_proposal_id']}")
    return _report(result)


def cmd_winner(args: argparse.Namespace) -> int:
    service = _load_service(args)
    if args.detailed:
        return _print_json(service.tally_result())
    print(service.get_winning_proposal_id())
    return 0


def cmd_events(args: argparse.Namespace) -> int:
    service = _load_service(args)
    return _print_json([e.to_dict() for e in service.events()])


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run ballot invariant checks against the stored state."""
    service = _load_service(args)
    errors = service.check_invariants()
    if errors:
        for err in errors:
            print(f"Invariant violation: {err}", file=sys.stderr)
        return 1
    print("Ballot invariant checks passed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = BallotSettings.from_env()
    parser = argparse.ArgumentParser(
        prog="ballot",
        description="Phase-gated plurality ballot CLI",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=settings.data_dir,
        help="Directory holding ballot.json and events.jsonl "
             "(default: $BALLOT_DATA_DIR or data/)",
    )
    parser.add_argument("--caller", help="Identity of the calling address")
    sub = parser.add_subparsers(dest="command")

    p_init = sub.add_parser("init", help="Deploy a new ballot")
    p_init.add_argument("--admin", required=True, help="Administrator identity")

    sub.add_parser("status", help="Show ballot status")

    p_reg = sub.add_parser("register-voter", help="Register a voter (admin)")
    p_reg.add_argument("address", help="Voter address")

    p_gv = sub.add_parser("get-voter", help="Show a voter record (voters only)")
    p_gv.add_argument("address", help="Voter address")

    sub.add_parser("open-proposals", help="Open proposal registration (admin)")

    p_sub = sub.add_parser("submit-proposal", help="Submit a proposal (voters only)")
    p_sub.add_argument("description", help="Proposal description")

    p_gp = sub.add_parser("get-proposal", help="Show a proposal (voters only)")
    p_gp.add_argument("proposal_id", type=int, help="Proposal ID")

    sub.add_parser("close-proposals", help="Close proposal registration (admin)")
    sub.add_parser("open-voting", help="Open the voting session (admin)")

    p_vote = sub.add_parser("cast-vote", help="Vote for a proposal (voters only)")
    p_vote.add_argument("proposal_id", type=int, help="Proposal ID")

    sub.add_parser("close-voting", help="Close the voting session (admin)")
    sub.add_parser("tally", help="Tally votes (admin)")

    p_win = sub.add_parser("winner", help="Show the winning proposal ID")
    p_win.add_argument(
        "--detailed", action="store_true",
        help="Show per-proposal counts and whether votes were tallied",
    )

    sub.add_parser("events", help="List recorded ballot events")
    sub.add_parser("check-invariants", help="Run ballot invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    settings = BallotSettings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "status": cmd_status,
        "register-voter": cmd_register_voter,
        "get-voter": cmd_get_voter,
        "open-proposals": cmd_open_proposals,
        "submit-proposal": cmd_submit_proposal,
        "get-proposal": cmd_get_proposal,
        "close-proposals": cmd_close_proposals,
        "open-voting": cmd_open_voting,
        "cast-vote": cmd_cast_vote,
        "close-voting": cmd_close_voting,
        "tally": cmd_tally,
        "winner": cmd_winner,
        "events": cmd_events,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
