# ======================================================================
#
# tokenflow/scanner/block_scanner.py
#
# Per-block Transfer extraction:
#   • _rpc(): every chain call goes through maybe_async + a timeout, and
#     transport errors are re-raised as block-scoped ScanErrors.
#   • scan(): block → tracked transactions → receipts → filter → decode.
#   • Malformed logs are recorded and skipped; they never fail the block.
#
# Receipts are only fetched for transactions sent to a tracked destination.
#
# ======================================================================

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import bittensor as bt

from tokenflow.chain import ChainClient
from tokenflow.contracts import ContractRegistry
from tokenflow.config import MASK_ADDRESSES
from tokenflow.errors import (
    BlockUnavailable,
    ChainRpcError,
    FetchTimeout,
    MalformedLog,
    ReceiptUnavailable,
    RpcFailure,
)
from tokenflow.events import TRANSFER_EVENT, EventSchema
from tokenflow.models import Block, BlockScanResult, DecodeFailure, Receipt
from tokenflow.scanner.decoder import decode_transfer
from tokenflow.scanner.log_filter import select_transfers
from tokenflow.utils.helpers import mask, maybe_async, normalize_topic


class BlockScanner:
    """Scans a single block for Transfer events from tracked contracts."""

    def __init__(
        self,
        chain: ChainClient,
        registry: ContractRegistry,
        *,
        treasury_topic: str,
        schema: EventSchema = TRANSFER_EVENT,
        fetch_timeout: float = 20.0,
        on_decode_failure: Optional[Callable[[DecodeFailure], None]] = None,
    ) -> None:
        self.chain = chain
        self.registry = registry
        self.schema = schema
        self.treasury_topic = normalize_topic(treasury_topic)
        self.fetch_timeout = fetch_timeout
        self.on_decode_failure = on_decode_failure

        # counters (event-loop thread only)
        self.blocks_scanned = 0
        self.receipts_fetched = 0
        self.transfers_decoded = 0
        self.decode_failures = 0

    async def _rpc(self, block_number: int, what: str, fn, *a):
        try:
            return await asyncio.wait_for(maybe_async(fn, *a), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            raise FetchTimeout(block_number, what, self.fetch_timeout) from None
        except ChainRpcError as e:
            raise RpcFailure(block_number, what, e) from e

    async def _get_block(self, bn: int) -> Block:
        block = await self._rpc(bn, "get_block", self.chain.get_block_with_transactions, bn)
        if block is None:
            # Only blocks at or below the confirmed head are ever requested.
            raise BlockUnavailable(bn)
        return block

    async def _get_receipt(self, bn: int, tx_hash: str) -> Receipt:
        receipt = await self._rpc(bn, f"get_receipt({tx_hash})", self.chain.get_transaction_receipt, tx_hash)
        if receipt is None:
            raise ReceiptUnavailable(bn, tx_hash)
        self.receipts_fetched += 1
        return receipt

    async def scan(self, block_number: int) -> BlockScanResult:
        """
        Return every decoded Transfer in *block_number* plus recorded decode failures.

        Raises:
            ScanError: block or receipt unavailable, fetch timeout, RPC failure.
        """
        block = await self._get_block(block_number)
        result = BlockScanResult(block_number=block.number, timestamp=block.timestamp)

        destinations = self.registry.tx_destinations()
        emitters = self.registry.erc20_addresses()

        for tx in block.transactions:
            if not tx.to or tx.to not in destinations:
                continue
            receipt = await self._get_receipt(block_number, tx.hash)

            for log, kind in select_transfers(receipt.logs, emitters, self.treasury_topic, self.schema.topic):
                contract = self.registry.get(log.address)
                try:
                    transfer = decode_transfer(
                        log,
                        self.schema,
                        contract=contract.name if contract else log.address,
                        block_number=block.number,
                        timestamp=block.timestamp,
                        kind=kind,
                        transaction_hash=tx.hash,
                    )
                except MalformedLog as e:
                    failure = DecodeFailure(
                        block_number=block.number,
                        transaction_hash=tx.hash,
                        log_index=log.log_index,
                        reason=e.reason,
                    )
                    result.failures.append(failure)
                    self.decode_failures += 1
                    bt.logging.warning(
                        f"[SCANNER] blk {block.number} tx {mask(tx.hash, MASK_ADDRESSES)} log#{log.log_index}: "
                        f"skipping malformed Transfer from {mask(log.address, MASK_ADDRESSES)} – {e.reason}"
                    )
                    if self.on_decode_failure is not None:
                        self.on_decode_failure(failure)
                    continue

                result.transfers.append(transfer)
                self.transfers_decoded += 1
                bt.logging.trace(
                    f"[SCANNER] blk {block.number} {transfer.contract} {kind.value} "
                    f"{mask(transfer.from_address, MASK_ADDRESSES)}→{mask(transfer.to_address, MASK_ADDRESSES)} value={transfer.value}"
                )

        self.blocks_scanned += 1
        bt.logging.debug(
            f"[SCANNER] blk {block.number}: {len(block.transactions)} txs, "
            f"{len(result.transfers)} transfers ({len(result.treasury)} treasury), "
            f"{len(result.failures)} decode failures"
        )
        return result
