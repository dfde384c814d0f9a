"""
zkvoid command line

    zkvoid note new --chain-id 1
    zkvoid note parse <token>
    zkvoid inputs --note <token> --leaves leaves.json --recipient 0x...
    zkvoid prove --note <token> --leaves leaves.json --recipient 0x...
    zkvoid info
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import zkvoid
from zkvoid.core.types import field_from_hex, field_to_hex
from zkvoid.crypto.hasher import get_hasher
from zkvoid.crypto.merkle import MerkleAccumulator
from zkvoid.errors import ConfigError, MixerError
from zkvoid.node.config import MixerConfig, get_config_info, setup_logging
from zkvoid.protocol.inputs import CircuitInputs, build_withdrawal_inputs, recompute_root
from zkvoid.protocol.note import generate_note, parse_note
from zkvoid.protocol.prover import get_prover
from zkvoid.state.pool import get_pool_info

logger = logging.getLogger(__name__)


def parse_field(value: str) -> int:
    """Accept 0x-prefixed hex or decimal."""
    value = value.strip()
    if value.lower().startswith("0x"):
        return field_from_hex(value)
    number = int(value)
    if number < 0:
        raise ValueError(f"Negative field element: {value}")
    return field_from_hex(format(number, "x"))


def _load_config(args) -> MixerConfig:
    if args.config:
        config = MixerConfig.load(args.config)
    else:
        config = MixerConfig()
    config.check()
    return config


def cmd_note_new(args, config: MixerConfig) -> int:
    chain_id = args.chain_id if args.chain_id is not None else config.note.chain_id
    _, token = generate_note(chain_id)
    print(token)
    return 0


def cmd_note_parse(args, config: MixerConfig) -> int:
    note = parse_note(args.token)
    hasher = get_hasher(args.hasher or config.tree.hasher)
    print(json.dumps({
        "chain_id": note.chain_id,
        "denomination": note.denomination,
        "commitment": field_to_hex(note.commitment(hasher)),
        "nullifier_hash": field_to_hex(note.nullifier_hash(hasher)),
    }, indent=2))
    return 0


def _build_inputs(args, config: MixerConfig) -> CircuitInputs:
    note = parse_note(args.note)
    hasher = get_hasher(args.hasher or config.tree.hasher)
    height = args.height or config.tree.height

    with open(args.leaves, "r") as f:
        leaves = [parse_field(str(v)) for v in json.load(f)]

    accumulator = MerkleAccumulator(height, hasher)
    for leaf in leaves:
        accumulator.insert(leaf)

    inputs = build_withdrawal_inputs(
        note,
        accumulator,
        recipient=parse_field(args.recipient),
        relayer=parse_field(args.relayer),
        fee=args.fee,
        refund=args.refund,
        hasher=hasher,
    )
    if recompute_root(inputs, hasher) != inputs.root:
        raise MixerError("Membership path does not reproduce the tree root")
    return inputs


def _write_output(data: str, out: Optional[str], what: str) -> None:
    if out:
        with open(out, "w") as f:
            f.write(data)
        logger.info(f"{what} written to {out}")
    else:
        print(data)


def cmd_inputs(args, config: MixerConfig) -> int:
    inputs = _build_inputs(args, config)
    _write_output(json.dumps(inputs.to_json_dict(), indent=2), args.out, "Circuit inputs")
    return 0


def cmd_prove(args, config: MixerConfig) -> int:
    if not config.prover.proving_key:
        raise ConfigError(["prover.proving_key is not set"])

    inputs = _build_inputs(args, config)
    prover = get_prover(
        config.prover.backend,
        wasm_path=config.prover.circuit_wasm,
        binary=config.prover.binary,
        timeout=config.prover.prove_timeout_sec,
    )
    bundle = prover.prove(config.prover.proving_key, inputs.to_json_dict(), inputs.public_signals())
    _write_output(json.dumps(bundle.to_dict(), indent=2), args.out, "Proof")
    return 0


def cmd_info(args, config: MixerConfig) -> int:
    print(json.dumps({
        "version": zkvoid.__version__,
        "config": config.to_dict(),
        "defaults": get_config_info(),
        "pool": get_pool_info(),
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zkvoid", description="zkvoid mixer tools")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--log-level", default=None, help="Override log level")
    sub = parser.add_subparsers(dest="command", required=True)

    note = sub.add_parser("note", help="Create or inspect notes")
    note_sub = note.add_subparsers(dest="note_command", required=True)

    note_new = note_sub.add_parser("new", help="Generate a fresh note")
    note_new.add_argument("--chain-id", type=int, default=None)
    note_new.set_defaults(func=cmd_note_new)

    note_parse = note_sub.add_parser("parse", help="Decode a note token")
    note_parse.add_argument("token")
    note_parse.add_argument("--hasher", default=None)
    note_parse.set_defaults(func=cmd_note_parse)

    for command, handler, help_text in (
        ("inputs", cmd_inputs, "Build withdrawal circuit inputs"),
        ("prove", cmd_prove, "Build inputs and generate a withdrawal proof"),
    ):
        witness = sub.add_parser(command, help=help_text)
        witness.add_argument("--note", required=True, help="Note token")
        witness.add_argument("--leaves", required=True, help="JSON list of deposited commitments")
        witness.add_argument("--recipient", required=True)
        witness.add_argument("--relayer", default="0")
        witness.add_argument("--fee", type=int, default=0)
        witness.add_argument("--refund", type=int, default=0)
        witness.add_argument("--height", type=int, default=None)
        witness.add_argument("--hasher", default=None)
        witness.add_argument("--out", default=None, help="Write JSON here instead of stdout")
        witness.set_defaults(func=handler)

    info = sub.add_parser("info", help="Show configuration and defaults")
    info.set_defaults(func=cmd_info)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
        log_config = config.log
        if args.log_level:
            log_config = replace(log_config, level=args.log_level)
        setup_logging(log_config)
        return args.func(args, config)
    except (MixerError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
