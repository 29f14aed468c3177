#!/usr/bin/env python3
"""
Percolator 命令行工具。

Examples:
    python -m percolator derive --router-program <ROUTER> --user <WALLET> --mint <MINT>
    python -m percolator encode-deposit --router-program <ROUTER> --user <WALLET> 1000000000
    python -m percolator oracle <ORACLE> --rpc http://127.0.0.1:8899
    python -m percolator oracles --oracle-program <ORACLE_PROGRAM> --json
    python -m percolator authority <AUTHORITY> <WALLET>

Outputs are human-readable; `--json` emits a JSON document instead.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
import typing
from dataclasses import asdict

from .accounts import decode_batch, decode_oracle, oracle_status
from .codec import Invalid
from .config import ProtocolConfig
from .constants import NATIVE_MINT, PRICE_ORACLE_SIZE, RPC_DEFAULT, from_fixed
from .errors import ClientError, PercolatorError
from .instructions import router
from .instructions.common import Instruction
from .multisig import Committee, check_permission
from .pda import (
    derive_authority,
    derive_escrow,
    derive_insurance_vault,
    derive_lp_seat,
    derive_portfolio,
    derive_receipt,
    derive_registry,
    derive_router_signer,
    derive_vault,
    derive_venue_pnl,
    portfolio_address,
)
from .rpc import RpcClient
from .schemas import ORACLE_MAGIC


def _dump(doc: typing.Any) -> None:
    print(json.dumps(doc, ensure_ascii=False, indent=2, default=str))


def _instruction_doc(ix: Instruction) -> dict[str, typing.Any]:
    return {
        "program_id": ix.program_id,
        "data_hex": ix.data.hex(),
        "accounts": [asdict(meta) for meta in ix.accounts],
    }


def _print_instruction(ix: Instruction) -> None:
    print(f"program  {ix.program_id}")
    print(f"data     {ix.data.hex()} ({len(ix.data)} bytes)")
    print("accounts:")
    for idx, meta in enumerate(ix.accounts):
        flags = ("s" if meta.is_signer else "-") + ("w" if meta.is_writable else "-")
        print(f"  {idx} [{flags}] {meta.pubkey}")


def _config(args: argparse.Namespace) -> ProtocolConfig:
    if not args.router_program:
        raise ClientError("--router-program 未指定")
    return ProtocolConfig(
        router_program_id=args.router_program,
        oracle_program_id=args.oracle_program,
        rpc_url=args.rpc,
    )


def cmd_derive(args: argparse.Namespace) -> int:
    program = _config(args).router_program_id
    doc: dict[str, typing.Any] = {
        "authority": derive_authority(program)._asdict(),
        "router_signer": derive_router_signer(program)._asdict(),
        "insurance_vault": derive_insurance_vault(program)._asdict(),
        "registry": derive_registry(program)._asdict(),
        "vault": derive_vault(args.mint, program)._asdict(),
    }
    if args.user:
        portfolio = portfolio_address(args.user, program)
        doc["portfolio_account"] = portfolio
        doc["portfolio_pda"] = derive_portfolio(args.user, program)._asdict()
        if args.slab:
            doc["escrow"] = derive_escrow(args.user, args.slab, args.mint, program)._asdict()
            doc["receipt"] = derive_receipt(portfolio, args.slab, program)._asdict()
        if args.matcher:
            doc["lp_seat"] = derive_lp_seat(
                program, args.matcher, portfolio, args.context_id, program
            )._asdict()
    if args.matcher:
        doc["venue_pnl"] = derive_venue_pnl(program, args.matcher, program)._asdict()
    if args.json:
        _dump(doc)
        return 0
    for label, value in doc.items():
        if isinstance(value, dict):
            print(f"{label:<18} {value['address']}  (bump {value['bump']})")
        else:
            print(f"{label:<18} {value}")
    return 0


def cmd_encode_deposit(args: argparse.Namespace) -> int:
    ix = router.deposit(_config(args), args.user, args.amount)
    if args.json:
        _dump(_instruction_doc(ix))
    else:
        _print_instruction(ix)
    return 0


def cmd_oracle(args: argparse.Namespace) -> int:
    rpc = RpcClient(args.rpc)
    record = decode_oracle(rpc.get_account_bytes(args.address))
    if isinstance(record, Invalid):
        raise ClientError(f"{args.address} 不是有效的 PriceOracle: {record}")
    health = oracle_status(record, int(time.time()), args.max_staleness)
    doc = {
        "address": args.address,
        **asdict(record),
        "price_ui": record.price_ui,
        "confidence_ui": record.confidence_ui,
        "status": health.status.value,
        "age_secs": health.age_secs,
    }
    if args.json:
        _dump(doc)
        return 0
    for key, value in doc.items():
        print(f"{key:<14} {value}")
    return 0


def cmd_oracles(args: argparse.Namespace) -> int:
    if not args.oracle_program:
        raise ClientError("--oracle-program 未指定")
    pairs = RpcClient(args.rpc).get_program_accounts(
        args.oracle_program,
        data_size=PRICE_ORACLE_SIZE,
        memcmp=[(0, ORACLE_MAGIC)],
    )
    batch = decode_batch(pairs, decode_oracle, expected_size=PRICE_ORACLE_SIZE)
    now = int(time.time())
    rows = []
    for address, record in batch.records:
        health = oracle_status(record, now, args.max_staleness)
        rows.append(
            {
                "address": address,
                "instrument": record.instrument,
                "price": str(from_fixed(record.price)),
                "status": health.status.value,
                "age_secs": health.age_secs,
            }
        )
    if args.json:
        _dump({"oracles": rows, "dropped": [[a, str(e)] for a, e in batch.errors]})
        return 0
    for row in rows:
        print(f"{row['address']}  {row['price']:>16}  {row['status']:<7} {row['age_secs']}s")
    if batch.errors:
        print(f"\n跳过 {batch.dropped} 个无法解析的账户", file=sys.stderr)
    return 0


def cmd_authority(args: argparse.Namespace) -> int:
    result = check_permission(args.authority, args.wallet, RpcClient(args.rpc).fetch)
    doc: dict[str, typing.Any] = {
        "authority": args.authority,
        "wallet": args.wallet,
        "granted": result.granted,
        "reason": result.reason,
    }
    if isinstance(result.authority, Committee):
        doc["members"] = sorted(result.authority.members)
        doc["threshold"] = result.authority.threshold
    if args.json:
        _dump(doc)
    else:
        for key, value in doc.items():
            print(f"{key:<10} {value}")
    return 0 if result.granted else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="percolator", description="Percolator 客户端工具")
    parser.add_argument("--rpc", default=RPC_DEFAULT, help="RPC 终端 (默认: %(default)s)")
    parser.add_argument("--router-program", help="router 程序地址")
    parser.add_argument("--oracle-program", help="oracle 程序地址")
    parser.add_argument("--json", action="store_true", help="输出 JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="打开调试日志")
    sub = parser.add_subparsers(dest="command", required=True)

    derive = sub.add_parser("derive", help="推导 router PDA")
    derive.add_argument("--user", help="用户钱包")
    derive.add_argument("--mint", default=NATIVE_MINT, help="抵押品 mint (默认: %(default)s)")
    derive.add_argument("--slab", help="slab 地址 (escrow / receipt)")
    derive.add_argument("--matcher", help="matcher state 地址 (lp_seat / venue_pnl)")
    derive.add_argument("--context-id", type=int, default=0, help="LP context id")
    derive.set_defaults(func=cmd_derive)

    deposit = sub.add_parser("encode-deposit", help="编码 Deposit 指令")
    deposit.add_argument("amount", type=int, help="原始数量 (u64)")
    deposit.add_argument("--user", required=True, help="用户钱包")
    deposit.set_defaults(func=cmd_encode_deposit)

    oracle = sub.add_parser("oracle", help="读取单个 PriceOracle")
    oracle.add_argument("address", help="oracle 账户地址")
    oracle.add_argument("--max-staleness", type=int, default=60, help="秒 (默认: %(default)s)")
    oracle.set_defaults(func=cmd_oracle)

    oracles = sub.add_parser("oracles", help="列出 oracle 程序下的全部 PriceOracle")
    oracles.add_argument("--max-staleness", type=int, default=60, help="秒 (默认: %(default)s)")
    oracles.set_defaults(func=cmd_oracles)

    authority = sub.add_parser("authority", help="检查钱包是否满足 authority (单签或 Squads 多签)")
    authority.add_argument("authority", help="authority 地址")
    authority.add_argument("wallet", help="待检查的钱包")
    authority.set_defaults(func=cmd_authority)
    return parser


def main(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (PercolatorError, ValueError) as exc:
        print(f"错误: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI
    raise SystemExit(main(sys.argv[1:]))
