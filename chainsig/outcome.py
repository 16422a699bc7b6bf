"""Signature extraction from transaction execution outcomes.

A signing request to the MPC signer contract resolves into a transaction
whose final status (or one of whose receipts) returns a JSON payload::

    {"big_r": {"affine_point": "02..."}, "s": {"scalar": "..."}, "recovery_id": 0}

The single-outcome form is strict and reports why extraction failed. The
multi-receipt form is best-effort: receipts unrelated to signing are expected
and skipped, and only an empty overall result is an error.
"""

import logging
from typing import Any

import msgspec

from .errors import ChainsigError
from .metrics import RECEIPTS_SKIPPED_TOTAL, SIGNATURES_EXTRACTED_TOTAL
from .models import SignatureComponents
from .signature import CompactSignature, assemble
from .types import BigRHex, ScalarHex

logger = logging.getLogger(__name__)


class OutcomeError(ChainsigError):
    """Error extracting signature components from an execution outcome."""


class NotSuccess(OutcomeError):
    """The outcome did not complete with a success value."""


class MalformedPayload(OutcomeError):
    """The success value is not UTF-8 JSON of the sign-response shape."""


class MissingField(OutcomeError):
    """The sign response lacks a required field.

    Attributes:
        field: Dotted name of the absent field

    """

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing {field}")
        self.field = field


class NoSignaturesFound(OutcomeError):
    """No receipt of the outcome carried a complete signature."""


class RpcError(OutcomeError):
    """The RPC response carries an error instead of a result."""


# Execution status wire types


class ExecutionStatus(
    msgspec.Struct,
    frozen=True,
    rename={
        "success_value": "SuccessValue",
        "success_receipt_id": "SuccessReceiptId",
        "failure": "Failure",
    },
):
    """Object form of an execution status.

    Exactly one attribute is set. ``success_value`` is base64 on the wire and
    raw bytes once decoded. Bare string statuses such as ``"NotStarted"``,
    ``"Started"`` or ``"Unknown"`` are kept as plain strings.
    """

    success_value: bytes | None = None
    success_receipt_id: str | None = None
    failure: Any = None


Status = str | ExecutionStatus


class ExecutionOutcome(msgspec.Struct, frozen=True):
    """Outcome of a single receipt's execution."""

    status: Status
    logs: list[str] = msgspec.field(default_factory=list)
    receipt_ids: list[str] = msgspec.field(default_factory=list)
    executor_id: str | None = None


class ReceiptOutcome(msgspec.Struct, frozen=True):
    """A receipt and its execution outcome."""

    outcome: ExecutionOutcome
    id: str | None = None


class FinalExecutionOutcome(msgspec.Struct, frozen=True):
    """Final status of a transaction plus the outcomes of all its receipts."""

    status: Status
    receipts_outcome: list[ReceiptOutcome] = msgspec.field(default_factory=list)


class TransactionResponse(msgspec.Struct, frozen=True):
    """A transaction status query result.

    ``final_execution_outcome`` is absent when the query returned before the
    transaction executed.
    """

    final_execution_outcome: FinalExecutionOutcome | None = None
    final_execution_status: str | None = None


class _TransactionResult(msgspec.Struct, frozen=True):
    status: Status | None = None
    receipts_outcome: list[ReceiptOutcome] = msgspec.field(default_factory=list)
    final_execution_status: str | None = None


class _RpcTransactionResponse(msgspec.Struct, frozen=True):
    # Union of the JSON-RPC envelope and a bare result
    result: _TransactionResult | None = None
    error: Any = None
    status: Status | None = None
    receipts_outcome: list[ReceiptOutcome] = msgspec.field(default_factory=list)
    final_execution_status: str | None = None


def decode_transaction_response(data: bytes | str) -> TransactionResponse:
    """Decode the JSON of a transaction status query.

    Accepts the JSON-RPC envelope or the bare result object.

    Raises:
        RpcError: If the envelope carries an error
        OutcomeError: If the JSON is malformed

    """
    try:
        decoded = msgspec.json.decode(data, type=_RpcTransactionResponse)
    except msgspec.DecodeError as e:
        raise OutcomeError(f"Invalid transaction response: {e}") from e

    if decoded.error is not None:
        raise RpcError(f"Transaction query failed: {decoded.error}")

    result: _TransactionResult | _RpcTransactionResponse = (
        decoded.result if decoded.result is not None else decoded
    )
    if result.status is None:
        return TransactionResponse(final_execution_status=result.final_execution_status)

    return TransactionResponse(
        final_execution_outcome=FinalExecutionOutcome(
            status=result.status,
            receipts_outcome=result.receipts_outcome,
        ),
        final_execution_status=result.final_execution_status,
    )


# Sign response payload types. Leaf values are typed loosely so that a wrong
# type reads as a missing field.


class AffinePoint(msgspec.Struct, frozen=True):
    affine_point: Any = None


class Scalar(msgspec.Struct, frozen=True):
    scalar: Any = None


class SignResponse(msgspec.Struct, frozen=True):
    """The signer contract's return value."""

    big_r: AffinePoint | None = None
    s: Scalar | None = None
    recovery_id: Any = None


def success_value(status: Status) -> bytes | None:
    """Return the success payload of a status, or None if it did not succeed."""
    if isinstance(status, ExecutionStatus):
        return status.success_value
    return None


def parse_sign_response(payload: bytes) -> SignatureComponents:
    """Parse a success payload into signature components.

    Raises:
        MalformedPayload: If the payload is not UTF-8 or not JSON of the
            expected shape
        MissingField: If ``big_r.affine_point`` or ``s.scalar`` is absent or
            not a string

    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayload(f"Success value is not UTF-8: {e}") from e

    try:
        response = msgspec.json.decode(text, type=SignResponse)
    except msgspec.ValidationError as e:
        raise MalformedPayload(f"Success value is not a sign response: {e}") from e
    except msgspec.DecodeError as e:
        raise MalformedPayload(f"Success value is not JSON: {e}") from e

    big_r = response.big_r.affine_point if response.big_r is not None else None
    if not isinstance(big_r, str):
        raise MissingField("big_r.affine_point")
    s = response.s.scalar if response.s is not None else None
    if not isinstance(s, str):
        raise MissingField("s.scalar")

    recovery_id = response.recovery_id
    if isinstance(recovery_id, bool) or not isinstance(recovery_id, int):
        recovery_id = None

    return SignatureComponents(big_r=BigRHex(big_r), s=ScalarHex(s), recovery_id=recovery_id)


def _final_outcome(
    response: TransactionResponse | FinalExecutionOutcome,
) -> FinalExecutionOutcome | None:
    if isinstance(response, FinalExecutionOutcome):
        return response
    return response.final_execution_outcome


def extract_single(response: TransactionResponse | FinalExecutionOutcome) -> SignatureComponents:
    """Extract ``(big_r, s)`` from the final status of a transaction.

    Raises:
        NotSuccess: If the transaction has no final outcome or did not succeed
            with a value
        MalformedPayload: If the value cannot be decoded
        MissingField: If either component is absent

    """
    outcome = _final_outcome(response)
    if outcome is None:
        raise NotSuccess("Transaction has no final execution outcome")

    payload = success_value(outcome.status)
    if payload is None:
        raise NotSuccess(f"Transaction did not succeed with a value: {outcome.status!r}")

    components = parse_sign_response(payload)
    SIGNATURES_EXTRACTED_TOTAL.labels(mode="single").inc()
    return components


def extract_all(response: TransactionResponse | FinalExecutionOutcome) -> list[SignatureComponents]:
    """Extract ``(big_r, s)`` from every receipt that returned one.

    Receipts that did not succeed with a value, or whose value is not a
    complete sign response, are skipped.

    Raises:
        NoSignaturesFound: If no receipt yielded both components

    """
    signatures: list[SignatureComponents] = []

    outcome = _final_outcome(response)
    receipts = outcome.receipts_outcome if outcome is not None else []

    for receipt in receipts:
        payload = success_value(receipt.outcome.status)
        if payload is None:
            RECEIPTS_SKIPPED_TOTAL.labels(reason="not_success").inc()
            continue
        try:
            signatures.append(parse_sign_response(payload))
        except MalformedPayload:
            RECEIPTS_SKIPPED_TOTAL.labels(reason="malformed_payload").inc()
            logger.debug(f"Skipping receipt {receipt.id}: payload is not a sign response")
        except MissingField as e:
            RECEIPTS_SKIPPED_TOTAL.labels(reason="missing_field").inc()
            logger.debug(f"Skipping receipt {receipt.id}: missing {e.field}")

    if not signatures:
        raise NoSignaturesFound("No signatures found")

    SIGNATURES_EXTRACTED_TOTAL.labels(mode="receipts").inc(len(signatures))
    logger.debug(f"Extracted {len(signatures)} signature(s) from {len(receipts)} receipt(s)")
    return signatures


def extract_signatures(response: TransactionResponse | FinalExecutionOutcome) -> list[CompactSignature]:
    """Extract and assemble every signature carried by the receipts of a transaction."""
    return [assemble(c.big_r, c.s) for c in extract_all(response)]
