"""
High-level facade: builders + decoders + authority checks over one RPC.

The pure layers stay pure; this is the only place that pairs them with a
transport. Every method that builds instructions returns them unsigned so
callers can batch, simulate or hand them to a wallet.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from . import schemas
from .accounts import (
    BatchResult,
    PriceOracle,
    Proposal,
    RegistryParams,
    decode_batch,
    decode_oracle,
    decode_proposal,
    decode_registry,
)
from .codec import Invalid
from .config import ProtocolConfig
from .constants import PORTFOLIO_ACCOUNT_SIZE, PRICE_ORACLE_SIZE, SQUADS_V4_PROGRAM_ID
from .errors import ClientError
from .instructions import oracle as oracle_ix
from .instructions import router
from .instructions.common import Instruction
from .keys import PubkeyLike, pubkey_bytes, pubkey_str
from .multisig import Authorization, Permission, check_permission, has_permission, pending_proposals
from .pda import derive_registry, portfolio_address
from .rpc import RpcClient
from .transaction import Keypair, Transaction

log = logging.getLogger(__name__)


class PercolatorClient:
    def __init__(self, config: ProtocolConfig, rpc: Optional[RpcClient] = None) -> None:
        self.config = config
        self.rpc = rpc or RpcClient(config.rpc_url, commitment=config.commitment)

    # ---- portfolio ----

    def portfolio_address(self, user: PubkeyLike) -> str:
        return portfolio_address(user, self.config.router_program_id)

    def portfolio_exists(self, user: PubkeyLike) -> bool:
        return self.rpc.get_account_info(self.portfolio_address(user)) is not None

    def build_initialize_portfolio(self, user: PubkeyLike) -> List[Instruction]:
        rent = self.rpc.get_minimum_balance_for_rent_exemption(PORTFOLIO_ACCOUNT_SIZE)
        return router.initialize_portfolio(self.config, user, rent)

    def build_deposit(self, user: PubkeyLike, amount: int) -> List[Instruction]:
        """Deposit, creating the portfolio first when it does not exist yet."""
        instructions: List[Instruction] = []
        if not self.portfolio_exists(user):
            log.info("portfolio for %s missing, prepending initialisation", pubkey_str(user))
            instructions.extend(self.build_initialize_portfolio(user))
        instructions.append(router.deposit(self.config, user, amount))
        return instructions

    def build_withdraw(self, user: PubkeyLike, amount: int) -> Instruction:
        return router.withdraw(self.config, user, amount)

    # ---- trading / liquidity ----

    def build_place_order(
        self,
        user: PubkeyLike,
        slab: PubkeyLike,
        oracle: PubkeyLike,
        params: router.PlaceOrderParams,
    ) -> Instruction:
        return router.place_order(self.config, user, slab, oracle, params)

    def build_add_liquidity(
        self, user: PubkeyLike, matcher_state: PubkeyLike, amount: int, context_id: int = 0
    ) -> Instruction:
        return router.router_reserve(self.config, user, matcher_state, amount, context_id)

    def build_remove_liquidity(
        self, user: PubkeyLike, matcher_state: PubkeyLike, context_id: int = 0
    ) -> Instruction:
        return router.router_release(self.config, user, matcher_state, context_id)

    def build_liquidate(self, liquidator: PubkeyLike, target_user: PubkeyLike) -> Instruction:
        return router.liquidate_user(self.config, liquidator, target_user)

    def build_update_risk_params(self, governance: PubkeyLike, params: router.RiskParams) -> Instruction:
        return router.update_risk_params(self.config, governance, params)

    # ---- oracle ----

    def build_initialize_oracle(
        self,
        authority: PubkeyLike,
        oracle: PubkeyLike,
        instrument: PubkeyLike,
        initial_price: int,
        bump: int = 0,
    ) -> List[Instruction]:
        rent = self.rpc.get_minimum_balance_for_rent_exemption(PRICE_ORACLE_SIZE)
        return oracle_ix.initialize_oracle(
            self.config, authority, oracle, instrument, initial_price, bump, rent
        )

    def build_update_price(
        self, authority: PubkeyLike, oracle: PubkeyLike, price: int, confidence: int = 0
    ) -> Instruction:
        return oracle_ix.update_price(self.config, authority, oracle, price, confidence)

    def fetch_oracle(self, address: PubkeyLike) -> PriceOracle:
        record = decode_oracle(self.rpc.get_account_bytes(address))
        if isinstance(record, Invalid):
            raise ClientError(f"{pubkey_str(address)} 不是有效的 PriceOracle: {record}")
        return record

    def fetch_oracles(self) -> BatchResult[PriceOracle]:
        program = self.config.require_oracle_program()
        pairs = self.rpc.get_program_accounts(
            program,
            data_size=PRICE_ORACLE_SIZE,
            memcmp=[(0, schemas.ORACLE_MAGIC)],
        )
        return decode_batch(pairs, decode_oracle, expected_size=PRICE_ORACLE_SIZE)

    # ---- governance ----

    def registry_address(self) -> str:
        return derive_registry(self.config.router_program_id).address

    def fetch_registry(self, address: Optional[PubkeyLike] = None) -> RegistryParams:
        address = self.registry_address() if address is None else pubkey_str(address)
        record = decode_registry(self.rpc.get_account_bytes(address))
        if isinstance(record, Invalid):
            raise ClientError(f"{address} 不是有效的 registry: {record}")
        return record

    def check_permission(self, authority: PubkeyLike, wallet: PubkeyLike) -> Authorization:
        return check_permission(authority, wallet, self.rpc.fetch)

    def has_permission(self, wallet: PubkeyLike, permission: Permission) -> Authorization:
        if permission == Permission.PUBLIC:
            return Authorization(True, "public")
        configured = (
            self.config.governance
            if permission == Permission.GOVERNANCE
            else self.config.insurance_authority
        )
        if configured is not None:
            return check_permission(configured, wallet, self.rpc.fetch)
        return has_permission(self.fetch_registry(), wallet, permission, self.rpc.fetch)

    def fetch_proposals(self, multisig: PubkeyLike) -> BatchResult[Proposal]:
        pairs = self.rpc.get_program_accounts(
            SQUADS_V4_PROGRAM_ID,
            memcmp=[
                (0, schemas.anchor_discriminator("Proposal")),
                (8, pubkey_bytes(multisig)),
            ],
        )
        return decode_batch(pairs, decode_proposal)

    def pending_proposals(self, multisig: PubkeyLike, wallet: PubkeyLike) -> List[Proposal]:
        batch = self.fetch_proposals(multisig)
        return pending_proposals((record for _, record in batch.records), wallet, multisig)

    # ---- transactions ----

    def build_transaction(
        self,
        instructions: Sequence[Instruction],
        payer: Keypair,
        *signers: Keypair,
    ) -> Transaction:
        blockhash = self.rpc.get_latest_blockhash()
        tx = Transaction.build(instructions, payer.pubkey, blockhash)
        return tx.sign(payer, *signers)

    def send(self, instructions: Sequence[Instruction], payer: Keypair, *signers: Keypair) -> str:
        tx = self.build_transaction(instructions, payer, *signers)
        signature = self.rpc.send_transaction(tx.serialize())
        log.info("sent %d instruction(s): %s", len(instructions), signature)
        return signature


__all__ = ["PercolatorClient"]
