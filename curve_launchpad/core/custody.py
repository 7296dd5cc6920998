"""
Custody collaborator interface and in-memory ledger

The executor never moves balances itself. It builds a list of instructions,
the same way a transaction is assembled from instructions, and submits the
batch to a Custody implementation, which must apply all of it or none of it.

Authorization is capability based: debits from a curve-owned account need the
CurveAuthority that custody issued for that curve; debits from any other
account need that account as the signer.
"""

import secrets
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Sequence, Set, Tuple, Union

from solders.pubkey import Pubkey

from curve_launchpad.core.errors import TransferError
from curve_launchpad.core.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class CurveAuthority:
    """Capability to move assets out of one curve's custody accounts"""
    curve: Pubkey
    token: str = field(default_factory=lambda: secrets.token_hex(16), repr=False)


@dataclass(frozen=True)
class SolTransfer:
    """Move lamports between accounts"""
    source: Pubkey
    destination: Pubkey
    amount: int


@dataclass(frozen=True)
class TokenTransfer:
    """Move tokens of one mint between owners"""
    mint: Pubkey
    source: Pubkey
    destination: Pubkey
    amount: int


@dataclass(frozen=True)
class TokenMint:
    """Mint new tokens to an owner (curve creation only)"""
    mint: Pubkey
    destination: Pubkey
    amount: int


Instruction = Union[SolTransfer, TokenTransfer, TokenMint]


class Custody(Protocol):
    """Asset custody collaborator used by the launchpad core"""

    def bind_curve(self, curve: Pubkey) -> CurveAuthority:
        """Issue the authority for a new curve's accounts"""
        ...

    def read_balance(self, account: Pubkey, mint: Optional[Pubkey] = None) -> int:
        """Lamports of account, or its balance of mint when given"""
        ...

    def submit(
        self,
        instructions: Sequence[Instruction],
        signer: Optional[Pubkey] = None,
        authority: Optional[CurveAuthority] = None
    ) -> None:
        """Apply every instruction or raise TransferError having applied none"""
        ...


class InMemoryCustody:
    """
    Reference ledger for tests and simulations

    Balances live in plain dicts; submit() applies a batch to copies and swaps
    them in only when every instruction succeeded.

    Usage:
        custody = InMemoryCustody()
        custody.airdrop(trader, 5 * LAMPORTS_PER_SOL)
        custody.submit([SolTransfer(trader, other, 1_000)], signer=trader)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._lamports: Dict[Pubkey, int] = {}
        self._tokens: Dict[Tuple[Pubkey, Pubkey], int] = {}
        self._authorities: Dict[Pubkey, CurveAuthority] = {}
        self._minted: Set[Pubkey] = set()
        self._fail_next: Optional[str] = None

    def bind_curve(self, curve: Pubkey) -> CurveAuthority:
        with self._lock:
            if curve in self._authorities:
                raise TransferError(f"curve {curve} already has an authority")
            authority = CurveAuthority(curve)
            self._authorities[curve] = authority
            return authority

    def airdrop(self, account: Pubkey, lamports: int) -> None:
        """Credit lamports out of thin air (test and simulation funding)"""
        if lamports < 0:
            raise ValueError("Airdrop amount must be non-negative")
        with self._lock:
            self._lamports[account] = self._lamports.get(account, 0) + lamports

    def fail_next_submit(self, message: str = "injected custody failure") -> None:
        """Make the next submit() raise TransferError after staging its instructions"""
        self._fail_next = message

    def read_balance(self, account: Pubkey, mint: Optional[Pubkey] = None) -> int:
        with self._lock:
            if mint is None:
                return self._lamports.get(account, 0)
            return self._tokens.get((mint, account), 0)

    def submit(
        self,
        instructions: Sequence[Instruction],
        signer: Optional[Pubkey] = None,
        authority: Optional[CurveAuthority] = None
    ) -> None:
        with self._lock:
            lamports = dict(self._lamports)
            tokens = dict(self._tokens)
            minted = set(self._minted)

            for instruction in instructions:
                self._stage(instruction, lamports, tokens, minted, signer, authority)

            if self._fail_next is not None:
                message, self._fail_next = self._fail_next, None
                raise TransferError(message)

            self._lamports = lamports
            self._tokens = tokens
            self._minted = minted

        logger.debug("custody_batch_applied", instructions=len(instructions), signer=signer)

    def _authorize_debit(
        self,
        source: Pubkey,
        signer: Optional[Pubkey],
        authority: Optional[CurveAuthority]
    ) -> None:
        if source in self._authorities:
            if authority is None or self._authorities[source] != authority:
                raise TransferError(f"missing curve authority for {source}")
        elif source != signer:
            raise TransferError(f"{source} did not sign the transfer")

    def _stage(
        self,
        instruction: Instruction,
        lamports: Dict[Pubkey, int],
        tokens: Dict[Tuple[Pubkey, Pubkey], int],
        minted: Set[Pubkey],
        signer: Optional[Pubkey],
        authority: Optional[CurveAuthority]
    ) -> None:
        if instruction.amount < 0:
            raise TransferError(f"negative amount in {instruction}")

        if isinstance(instruction, SolTransfer):
            self._authorize_debit(instruction.source, signer, authority)
            available = lamports.get(instruction.source, 0)
            if available < instruction.amount:
                raise TransferError(
                    f"{instruction.source} holds {available} lamports, needs {instruction.amount}"
                )
            lamports[instruction.source] = available - instruction.amount
            lamports[instruction.destination] = lamports.get(instruction.destination, 0) + instruction.amount

        elif isinstance(instruction, TokenTransfer):
            self._authorize_debit(instruction.source, signer, authority)
            source_key = (instruction.mint, instruction.source)
            available = tokens.get(source_key, 0)
            if available < instruction.amount:
                raise TransferError(
                    f"{instruction.source} holds {available} tokens, needs {instruction.amount}"
                )
            dest_key = (instruction.mint, instruction.destination)
            tokens[source_key] = available - instruction.amount
            tokens[dest_key] = tokens.get(dest_key, 0) + instruction.amount

        elif isinstance(instruction, TokenMint):
            if authority is None or self._authorities.get(authority.curve) != authority:
                raise TransferError("minting requires a bound curve authority")
            if instruction.mint in minted:
                raise TransferError(f"mint {instruction.mint} has already been minted")
            dest_key = (instruction.mint, instruction.destination)
            tokens[dest_key] = tokens.get(dest_key, 0) + instruction.amount
            # Supply is fixed: a mint can only be minted once
            minted.add(instruction.mint)

        else:
            raise TransferError(f"unsupported instruction {instruction!r}")
