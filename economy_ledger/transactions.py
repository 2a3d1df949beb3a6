"""
Transaction Processing Module

Deposits, withdrawals, transfers, currency exchange, fees and interest. Each
operation validates, mutates balances and appends its transaction records
inside a single LedgerStore.transact call, so either every balance change and
record of the operation is persisted or none is.

Transaction amounts are signed: positive for money flowing into the account,
negative for money flowing out. ``balance_after`` is a snapshot taken when the
record was written, and replaying an account's amounts from zero reproduces
its live balance.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, TypeVar
import uuid

from .accounts import Account, load_account
from .banks import FeeKind, effective_interest_rate, load_bank
from .economy import resolve_exchange_rate
from .errors import (
    ConflictError, InsufficientFundsError, InvalidAmountError, LedgerError, NotFoundError
)
from .events import DomainEvent, EventDispatcher, EventPublisherMixin
from .logging_config import get_logger, log_action
from .money import (
    ONE, ZERO, AmountLike, percentage_of, quantize_amount, require_in_range,
    require_non_negative, require_positive, to_decimal
)
from .storage import LedgerState, LedgerStore, parse_datetime, utcnow


T = TypeVar("T")


class TransactionType(Enum):
    """Types of ledger transactions"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    EXCHANGE = "exchange"
    INTEREST = "interest"
    FEE = "fee"


@dataclass(frozen=True)
class Transaction:
    """
    Immutable record of one balance change on one account
    """
    id: str
    account_id: str
    type: TransactionType
    amount: Decimal
    currency_id: str
    balance_after: Decimal
    description: str
    created_by: str
    created_at: datetime
    related_account_id: Optional[str] = None
    related_transaction_id: Optional[str] = None

    @property
    def is_credit(self) -> bool:
        return self.amount > ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type.value,
            "amount": str(self.amount),
            "currency_id": self.currency_id,
            "balance_after": str(self.balance_after),
            "description": self.description,
            "related_account_id": self.related_account_id,
            "related_transaction_id": self.related_transaction_id,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=data['id'],
            account_id=data['account_id'],
            type=TransactionType(data['type']),
            amount=to_decimal(data['amount']),
            currency_id=data['currency_id'],
            balance_after=to_decimal(data['balance_after']),
            description=data.get('description', ""),
            created_by=data.get('created_by', "system"),
            created_at=parse_datetime(data['created_at']),
            related_account_id=data.get('related_account_id'),
            related_transaction_id=data.get('related_transaction_id'),
        )


@dataclass(frozen=True)
class TransferResult:
    """Both legs of a transfer or exchange, plus the fee record if one was charged"""
    outgoing: Transaction
    incoming: Transaction
    fee: Optional[Transaction] = None

    @property
    def transactions(self) -> List[Transaction]:
        return [t for t in (self.outgoing, self.fee, self.incoming) if t is not None]


class TransactionEngine(EventPublisherMixin):
    """
    Applies balance-changing operations and keeps the transaction history
    """

    def __init__(
        self,
        store: LedgerStore,
        event_dispatcher: Optional[EventDispatcher] = None,
        amount_precision: int = 4,
        default_limit: int = 50,
        default_all_limit: int = 100
    ):
        self.store = store
        self._event_dispatcher = event_dispatcher
        self.amount_precision = amount_precision
        self.default_limit = default_limit
        self.default_all_limit = default_all_limit
        self.logger = get_logger("economy_ledger.transactions")

    # ============ INTERNALS ============

    def _commit(self, action: str, resource: str, initiator: str,
                operation: Callable[[LedgerState], T]) -> T:
        """Run operation in one store transaction, logging rejections"""
        try:
            return self.store.transact(operation)
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"{action} rejected: {e.message}",
                user_id=initiator, action=action, resource=resource,
                extra={"error_kind": e.kind.value}
            )
            raise

    def _credit(self, state: LedgerState, account: Account, amount: Decimal) -> None:
        account.balance = require_in_range(account.balance + amount)
        account.updated_at = utcnow()
        state.accounts[account.id] = account.to_dict()

    def _debit(self, state: LedgerState, account: Account, amount: Decimal) -> None:
        if account.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds: balance {account.balance}, requested {amount}"
            )
        account.balance -= amount
        account.updated_at = utcnow()
        state.accounts[account.id] = account.to_dict()

    def _record(
        self,
        state: LedgerState,
        account: Account,
        transaction_type: TransactionType,
        amount: Decimal,
        description: str,
        initiator: str,
        related_account_id: Optional[str] = None,
        related_transaction_id: Optional[str] = None,
        transaction_id: Optional[str] = None
    ) -> Transaction:
        transaction = Transaction(
            id=transaction_id or str(uuid.uuid4()),
            account_id=account.id,
            type=transaction_type,
            amount=amount,
            currency_id=account.currency_id,
            balance_after=account.balance,
            description=description,
            created_by=initiator,
            created_at=utcnow(),
            related_account_id=related_account_id,
            related_transaction_id=related_transaction_id
        )
        state.transactions.append(transaction.to_dict())
        return transaction

    def _convert(self, amount: Decimal, rate: Decimal) -> Decimal:
        if rate == ONE:
            return amount
        converted = require_in_range(quantize_amount(amount * rate, self.amount_precision))
        if converted <= ZERO:
            raise InvalidAmountError(
                f"Amount {amount} is too small to convert at rate {rate}"
            )
        return converted

    def _announce(self, transactions: List[Transaction], action: str, initiator: str) -> None:
        for transaction in transactions:
            log_action(
                self.logger, "info", f"{transaction.type.value}: {transaction.amount} on account {transaction.account_id}",
                user_id=initiator, action=action, resource=f"transaction:{transaction.id}",
                extra={
                    "account_id": transaction.account_id,
                    "amount": str(transaction.amount),
                    "balance_after": str(transaction.balance_after),
                    "currency_id": transaction.currency_id,
                }
            )
            self.publish_event(DomainEvent.TRANSACTION_RECORDED, "transaction", transaction.id,
                               transaction.to_dict())

    # ============ OPERATIONS ============

    def deposit(
        self,
        account_id: str,
        amount: AmountLike,
        description: str = "Deposit",
        initiator: str = "system"
    ) -> Transaction:
        """
        Add funds to an account

        Raises:
            InvalidAmountError: If amount is not positive
            NotFoundError: If the account does not exist
            InactiveAccountError: If the account is closed
        """
        value = require_positive(amount)

        def apply(state: LedgerState) -> Transaction:
            account = load_account(state, account_id)
            account.require_active()
            self._credit(state, account, value)
            return self._record(state, account, TransactionType.DEPOSIT, value, description, initiator)

        transaction = self._commit("deposit", f"account:{account_id}", initiator, apply)
        self._announce([transaction], "deposit", initiator)
        return transaction

    def withdraw(
        self,
        account_id: str,
        amount: AmountLike,
        description: str = "Withdrawal",
        initiator: str = "system"
    ) -> Transaction:
        """
        Remove funds from an account; the record's amount is negative

        Raises:
            InsufficientFundsError: If the balance is lower than amount
        """
        value = require_positive(amount)

        def apply(state: LedgerState) -> Transaction:
            account = load_account(state, account_id)
            account.require_active()
            self._debit(state, account, value)
            return self._record(state, account, TransactionType.WITHDRAWAL, -value, description, initiator)

        transaction = self._commit("withdraw", f"account:{account_id}", initiator, apply)
        self._announce([transaction], "withdraw", initiator)
        return transaction

    def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: AmountLike,
        description: str = "Transfer",
        initiator: str = "system"
    ) -> TransferResult:
        """
        Move funds between two accounts, converting currency if needed

        ``amount`` is in the source currency; the destination receives
        ``amount * rate`` rounded to the configured precision. Both legs
        reference each other through related_account_id and
        related_transaction_id.

        Raises:
            ConflictError: If source and destination are the same account
            InsufficientFundsError: If the source balance is lower than amount
            NotConvertibleError: If no exchange rate can be derived
        """
        value = require_positive(amount)
        if from_account_id == to_account_id:
            raise InvalidAmountError("Cannot transfer from an account to itself")

        def apply(state: LedgerState) -> TransferResult:
            source = load_account(state, from_account_id)
            destination = load_account(state, to_account_id)
            source.require_active()
            destination.require_active()

            if source.balance < value:
                raise InsufficientFundsError(
                    f"Insufficient funds: balance {source.balance}, requested {value}"
                )

            rate = resolve_exchange_rate(state, source.currency_id, destination.currency_id)
            credited = self._convert(value, rate)

            outgoing_id = str(uuid.uuid4())
            incoming_id = str(uuid.uuid4())

            self._debit(state, source, value)
            outgoing = self._record(
                state, source, TransactionType.TRANSFER, -value,
                f"{description} to {destination.owner_name}", initiator,
                related_account_id=destination.id, related_transaction_id=incoming_id,
                transaction_id=outgoing_id
            )
            self._credit(state, destination, credited)
            incoming = self._record(
                state, destination, TransactionType.TRANSFER, credited,
                f"{description} from {source.owner_name}", initiator,
                related_account_id=source.id, related_transaction_id=outgoing_id,
                transaction_id=incoming_id
            )
            return TransferResult(outgoing=outgoing, incoming=incoming)

        result = self._commit("transfer", f"account:{from_account_id}", initiator, apply)
        self._announce(result.transactions, "transfer", initiator)
        return result

    def exchange(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: AmountLike,
        description: str = "Currency exchange",
        initiator: str = "system"
    ) -> TransferResult:
        """
        Exchange money between two accounts of the same owner held in
        different currencies

        The source bank's exchange fee (a percentage of amount, in the source
        currency) is debited on top of amount and recorded as its own fee
        transaction.
        """
        value = require_positive(amount)
        if from_account_id == to_account_id:
            raise ConflictError("Cannot exchange an account with itself")

        def apply(state: LedgerState) -> TransferResult:
            source = load_account(state, from_account_id)
            destination = load_account(state, to_account_id)
            source.require_active()
            destination.require_active()

            if source.owner_id != destination.owner_id:
                raise ConflictError("Currency exchange requires two accounts of the same owner")
            if source.currency_id == destination.currency_id:
                raise ConflictError("Currency exchange requires accounts in different currencies")

            bank = load_bank(state, source.bank_id)
            fee = quantize_amount(bank.fees.fee_for(FeeKind.EXCHANGE, value), self.amount_precision)
            if source.balance < value + fee:
                raise InsufficientFundsError(
                    f"Insufficient funds: balance {source.balance}, requested {value} plus fee {fee}"
                )

            rate = resolve_exchange_rate(state, source.currency_id, destination.currency_id)
            credited = self._convert(value, rate)

            outgoing_id = str(uuid.uuid4())
            incoming_id = str(uuid.uuid4())

            self._debit(state, source, value)
            outgoing = self._record(
                state, source, TransactionType.EXCHANGE, -value, description, initiator,
                related_account_id=destination.id, related_transaction_id=incoming_id,
                transaction_id=outgoing_id
            )
            fee_record = None
            if fee > ZERO:
                self._debit(state, source, fee)
                fee_record = self._record(
                    state, source, TransactionType.FEE, -fee, f"Exchange fee ({bank.name})", initiator,
                    related_transaction_id=outgoing_id
                )
            self._credit(state, destination, credited)
            incoming = self._record(
                state, destination, TransactionType.EXCHANGE, credited, description, initiator,
                related_account_id=source.id, related_transaction_id=outgoing_id,
                transaction_id=incoming_id
            )
            return TransferResult(outgoing=outgoing, incoming=incoming, fee=fee_record)

        result = self._commit("exchange", f"account:{from_account_id}", initiator, apply)
        self._announce(result.transactions, "exchange", initiator)
        return result

    def charge_fee(
        self,
        account_id: str,
        amount: AmountLike,
        description: str = "Bank fee",
        initiator: str = "system"
    ) -> Transaction:
        """Debit a fee from an account"""
        value = require_positive(amount, "Fee")

        def apply(state: LedgerState) -> Transaction:
            account = load_account(state, account_id)
            account.require_active()
            self._debit(state, account, value)
            return self._record(state, account, TransactionType.FEE, -value, description, initiator)

        transaction = self._commit("charge_fee", f"account:{account_id}", initiator, apply)
        self._announce([transaction], "charge_fee", initiator)
        return transaction

    def _interest_for(self, state: LedgerState, account: Account, rate: Optional[Decimal]) -> Decimal:
        if rate is None:
            rate = effective_interest_rate(state, load_bank(state, account.bank_id))
        return quantize_amount(percentage_of(account.balance, rate), self.amount_precision)

    def post_interest(
        self,
        account_id: str,
        rate: Optional[AmountLike] = None,
        description: str = "Interest",
        initiator: str = "system"
    ) -> Optional[Transaction]:
        """
        Credit one period of interest to an account

        ``rate`` is a percentage; when omitted the bank's effective rate is
        used. Returns None when the interest rounds to zero. Scheduling
        periodic postings is the caller's job.
        """
        percent = require_non_negative(rate, "Interest rate") if rate is not None else None

        def apply(state: LedgerState) -> Optional[Transaction]:
            account = load_account(state, account_id)
            account.require_active()
            interest = self._interest_for(state, account, percent)
            if interest <= ZERO:
                return None
            self._credit(state, account, interest)
            return self._record(state, account, TransactionType.INTEREST, interest, description, initiator)

        transaction = self._commit("post_interest", f"account:{account_id}", initiator, apply)
        if transaction is not None:
            self._announce([transaction], "post_interest", initiator)
        return transaction

    def post_interest_for_bank(
        self,
        bank_id: str,
        description: str = "Interest",
        initiator: str = "system"
    ) -> List[Transaction]:
        """Credit one period of interest to every active account at a bank"""
        def apply(state: LedgerState) -> List[Transaction]:
            load_bank(state, bank_id)
            posted = []
            for data in list(state.accounts.values()):
                if data['bank_id'] != bank_id or not data.get('is_active', True):
                    continue
                account = Account.from_dict(data)
                interest = self._interest_for(state, account, None)
                if interest > ZERO:
                    self._credit(state, account, interest)
                    posted.append(self._record(
                        state, account, TransactionType.INTEREST, interest, description, initiator
                    ))
            return posted

        transactions = self._commit("post_interest", f"bank:{bank_id}", initiator, apply)
        self._announce(transactions, "post_interest", initiator)
        return transactions

    # ============ QUERIES ============

    def get_transaction(self, transaction_id: str) -> Transaction:
        for data in self.store.load().transactions:
            if data['id'] == transaction_id:
                return Transaction.from_dict(data)
        raise NotFoundError("transaction", transaction_id)

    def get_transactions(self, account_id: str, limit: Optional[int] = None) -> List[Transaction]:
        """An account's transactions, newest first"""
        state = self.store.load()
        load_account(state, account_id)
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return []

        result = []
        for data in reversed(state.transactions):
            if data['account_id'] == account_id:
                result.append(Transaction.from_dict(data))
                if len(result) >= limit:
                    break
        return result

    def get_all_transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        """All transactions in the world, newest first"""
        limit = self.default_all_limit if limit is None else limit
        recent = self.store.load().transactions[-limit:] if limit > 0 else []
        return [Transaction.from_dict(data) for data in reversed(recent)]

    def replay_balance(self, account_id: str) -> Decimal:
        """Balance obtained by replaying the account's transactions from zero"""
        state = self.store.load()
        load_account(state, account_id)
        return sum(
            (to_decimal(data['amount']) for data in state.transactions if data['account_id'] == account_id),
            ZERO
        )

    def verify_balance(self, account_id: str) -> bool:
        """Whether the live balance matches the replayed history"""
        state = self.store.load()
        account = load_account(state, account_id)
        replayed = sum(
            (to_decimal(data['amount']) for data in state.transactions if data['account_id'] == account_id),
            ZERO
        )
        if replayed != account.balance:
            self.logger.warning(
                f"Balance mismatch on account {account_id}: live {account.balance}, replayed {replayed}"
            )
            return False
        return True
