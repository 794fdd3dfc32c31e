import logging
from typing import Callable, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from seamless_wallet.database import transaction_scope
from seamless_wallet.models import (
    Account,
    GameSession,
    SeamlessTransaction,
    TransactionStatus,
    TransactionType,
)
from seamless_wallet.schemas.callback import (
    CALLBACK_REQUEST_TYPES,
    BalanceCallback,
    CallbackAction,
    CallbackResponse,
    CreditCallback,
    DebitCallback,
    ResponseStatus,
    RollbackCallback,
    TransactionCallback,
)
from seamless_wallet.services.balance import BalanceMutator
from seamless_wallet.services.errors import (
    DuplicateTransaction,
    InsufficientFunds,
    InvalidRequest,
    OriginalTransactionNotFound,
    SeamlessError,
    SignatureInvalid,
    TransactionOwnershipConflict,
    TransientStoreFailure,
)
from seamless_wallet.services.ledger import LedgerEffect, TransactionLedger, rollback_key
from seamless_wallet.services.session_registry import SessionRegistry
from seamless_wallet.utils.money import format_money, to_money
from seamless_wallet.utils.signature import SignatureValidator

logger = logging.getLogger(__name__)

Params = Union[Mapping[str, str], Sequence[Tuple[str, str]]]


class WalletEngine:
    """
    Seamless wallet callback engine.

    Each callback is one unit of work opened with ``session_factory``: the
    session lookup, the ledger write and the balance update commit or roll
    back together. Every outcome, including unexpected faults, is returned
    as a CallbackResponse; nothing propagates to the transport.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        signature_validator: SignatureValidator,
        lock_timeout_ms: int = 5000,
        record_balance_requests: bool = True,
        rollback_not_found_status: str = ResponseStatus.NOT_FOUND.value,
    ):
        self.session_factory = session_factory
        self.signature_validator = signature_validator
        self.lock_timeout_ms = lock_timeout_ms
        self.record_balance_requests = record_balance_requests
        self.rollback_not_found_status = rollback_not_found_status
        self._handlers = {
            CallbackAction.BALANCE: self.handle_balance,
            CallbackAction.DEBIT: self.handle_debit,
            CallbackAction.CREDIT: self.handle_credit,
            CallbackAction.ROLLBACK: self.handle_rollback,
        }

    # ==================== entry point ====================

    def dispatch(self, action: str, params: Params) -> CallbackResponse:
        """Authenticate, parse and handle one provider callback."""
        items = list(params.items()) if isinstance(params, Mapping) else list(params)

        try:
            if not self.signature_validator.is_valid(items):
                raise SignatureInvalid()
            try:
                action = CallbackAction(action)
            except ValueError:
                raise InvalidRequest(f"Unknown action: {action}")
            request = self._parse(action, items)
        except SeamlessError as e:
            logger.warning(f"Callback {action} rejected before handling: {e.status} {e.msg}")
            return self._error_response(e)

        handler = self._handlers[action]
        logger.info(f"Seamless {action.value} callback: remote_id={request.remote_id}")
        try:
            try:
                return handler(request)
            except DuplicateTransaction as e:
                # a concurrent request recorded the same key first: replay its row
                logger.warning(f"Insert race on {e}; replaying")
                return handler(request)
        except SeamlessError as e:
            return self._error_response(e)
        except (OperationalError, DuplicateTransaction) as e:
            logger.warning(f"Transient store failure during {action.value}: {e}")
            return self._error_response(TransientStoreFailure())
        except Exception as e:
            logger.error(f"Seamless {action.value} callback failed unexpectedly: {e}", exc_info=True)
            return CallbackResponse(status=ResponseStatus.INTERNAL_ERROR.value, msg="Internal server error")

    # ==================== handlers ====================

    def handle_balance(self, request: BalanceCallback) -> CallbackResponse:
        with transaction_scope(self.session_factory) as db:
            registry = SessionRegistry(db)
            game_session = registry.resolve_session(request.remote_id, request.session_id)
            account = db.get(Account, game_session.account_id)
            if account is None:
                raise LookupError(f"Account {game_session.account_id} not found")
            balance = to_money(account.wallet_balance)

            if self.record_balance_requests:
                TransactionLedger(db).record_balance_query(
                    account.id, balance, **self._row_attributes(request, game_session)
                )
            registry.touch(game_session)

        return CallbackResponse(status=ResponseStatus.OK.value, balance=format_money(balance))

    def handle_debit(self, request: DebitCallback) -> CallbackResponse:
        def apply_debit(mutator: BalanceMutator, account: Account) -> LedgerEffect:
            change = mutator.debit(account, request.amount)
            if change.applied:
                mutator.adjust_total_bet(account, request.amount)
            return LedgerEffect(
                account_id=account.id,
                amount=request.amount,
                balance_before=change.balance_before,
                balance_after=change.balance_after,
                status=TransactionStatus.SUCCESS if change.applied else TransactionStatus.FAILED,
            )

        return self._handle_transaction(
            TransactionType.DEBIT,
            request,
            apply_debit,
            is_freeround_bet=request.is_freeround_bet,
            jackpot_contribution_in_amount=request.jackpot_contribution_in_amount,
        )

    def handle_credit(self, request: CreditCallback) -> CallbackResponse:
        def apply_credit(mutator: BalanceMutator, account: Account) -> LedgerEffect:
            # wins are unconditional
            change = mutator.credit(account, request.amount)
            return LedgerEffect(
                account_id=account.id,
                amount=request.amount,
                balance_before=change.balance_before,
                balance_after=change.balance_after,
            )

        return self._handle_transaction(
            TransactionType.CREDIT,
            request,
            apply_credit,
            is_freeround_win=request.is_freeround_win,
            is_jackpot_win=request.is_jackpot_win,
        )

    def _handle_transaction(
        self,
        tx_type: TransactionType,
        request: TransactionCallback,
        apply_effect: Callable[[BalanceMutator, Account], LedgerEffect],
        **flags,
    ) -> CallbackResponse:
        """
        Shared debit/credit flow. A known transaction id is answered from
        its ledger row even when the player's session has since been closed;
        only an unseen id needs an active session.
        """
        with transaction_scope(self.session_factory) as db:
            registry = SessionRegistry(db)
            ledger = TransactionLedger(db)

            existing = ledger.find(tx_type, request.transaction_id)
            if existing is not None:
                if existing.remote_id and existing.remote_id != request.remote_id:
                    logger.warning(
                        f"{tx_type.value} {request.transaction_id} was recorded for remote_id="
                        f"{existing.remote_id}, not {request.remote_id}"
                    )
                    raise TransactionOwnershipConflict()
                logger.info(f"Replaying {tx_type.value} {request.transaction_id} without re-applying")
                game_session = registry.find_active_session(request.remote_id)
                if game_session is not None:
                    registry.touch(game_session)
                return self._transaction_response(existing)

            mutator = BalanceMutator(db, self.lock_timeout_ms)
            game_session = registry.resolve_session(request.remote_id, request.session_id)
            account = mutator.lock_account(game_session.account_id)

            # looked up again under the lock: a concurrent request may have recorded it
            row, _ = ledger.record_or_replay(
                tx_type,
                request.transaction_id,
                lambda: apply_effect(mutator, account),
                **flags,
                **self._row_attributes(request, game_session),
            )
            self._check_owner(row, account)
            registry.touch(game_session)
            return self._transaction_response(row)

    def handle_rollback(self, request: RollbackCallback) -> CallbackResponse:
        with transaction_scope(self.session_factory) as db:
            ledger = TransactionLedger(db)
            registry = SessionRegistry(db)
            mutator = BalanceMutator(db, self.lock_timeout_ms)

            original = ledger.find_original(request.transaction_id)
            if original is None:
                logger.warning(f"Rollback of unknown transaction {request.transaction_id}")
                raise OriginalTransactionNotFound()
            if original.remote_id and original.remote_id != request.remote_id:
                raise TransactionOwnershipConflict()

            account = mutator.lock_account(original.account_id)
            # status may have changed while waiting for the lock
            db.refresh(original)

            if original.status == TransactionStatus.FAILED:
                # rejected debit: nothing was applied, nothing to reverse
                logger.info(f"Rollback of rejected {original.type.value} {request.transaction_id}: no effect")
                return CallbackResponse(
                    status=ResponseStatus.OK.value,
                    balance=format_money(account.wallet_balance),
                    msg="Nothing to roll back",
                )

            def reverse() -> LedgerEffect:
                if original.type == TransactionType.DEBIT:
                    change = mutator.credit(account, to_money(original.amount))
                    mutator.adjust_total_bet(account, -to_money(original.amount))
                else:
                    change = mutator.debit(account, to_money(original.amount))
                    if not change.applied:
                        raise InsufficientFunds("Insufficient funds for rollback", balance=change.balance_before)
                ledger.mark_rolled_back(original)
                return LedgerEffect(
                    account_id=account.id,
                    amount=to_money(original.amount),
                    balance_before=change.balance_before,
                    balance_after=change.balance_after,
                    related_transaction_id=original.id,
                )

            game_session = registry.find_active_session(request.remote_id)
            attributes = self._row_attributes(request, game_session)
            attributes["round_id"] = attributes.get("round_id") or original.round_id
            attributes["game_id"] = attributes.get("game_id") or original.game_id

            row, replayed = ledger.record_or_replay(
                TransactionType.ROLLBACK,
                rollback_key(original),
                reverse,
                **attributes,
            )
            if game_session is not None:
                registry.touch(game_session)

            return CallbackResponse(
                status=ResponseStatus.OK.value,
                balance=format_money(row.balance_after),
                transactionId=row.transaction_id,
                msg="Transaction already rolled back" if replayed else None,
            )

    # ==================== helpers ====================

    def _parse(self, action: CallbackAction, items):
        try:
            return CALLBACK_REQUEST_TYPES[action].model_validate(dict(items))
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "request"
            raise InvalidRequest(f"{field}: {first.get('msg')}")

    @staticmethod
    def _row_attributes(request, game_session: Optional[GameSession]) -> dict:
        attributes = {
            "remote_id": request.remote_id,
            "provider": request.provider,
            "game_id": request.game_id,
            "game_id_hash": request.game_id_hash,
            "round_id": getattr(request, "round_id", None),
            "game_session_id": game_session.id if game_session is not None else None,
        }
        if isinstance(request, TransactionCallback):
            attributes["gameplay_final"] = request.gameplay_final
        return attributes

    @staticmethod
    def _check_owner(row: SeamlessTransaction, account: Account) -> None:
        if row.account_id != account.id:
            logger.warning(
                f"{row.type.value} {row.provider_transaction_id} belongs to account "
                f"{row.account_id}, not {account.id}"
            )
            raise TransactionOwnershipConflict()

    @staticmethod
    def _transaction_response(row: SeamlessTransaction) -> CallbackResponse:
        if row.status == TransactionStatus.FAILED:
            return CallbackResponse(
                status=InsufficientFunds.status,
                balance=format_money(row.balance_after),
                msg=InsufficientFunds.msg,
            )
        return CallbackResponse(
            status=ResponseStatus.OK.value,
            balance=format_money(row.balance_after),
            transactionId=row.transaction_id,
        )

    def _error_response(self, error: SeamlessError) -> CallbackResponse:
        status = error.status
        if isinstance(error, OriginalTransactionNotFound):
            status = self.rollback_not_found_status
        balance = format_money(error.balance) if error.balance is not None else None
        return CallbackResponse(status=status, balance=balance, msg=error.msg)
