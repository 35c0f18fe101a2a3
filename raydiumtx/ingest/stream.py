"""
Stream record parsing.

Two input shapes are supported:

1. Stream records (one JSON object per line):
   {
     "signature": "...", "slot": 123,
     "top_level_instructions": [
       {"program_id": "...", "account_keys": ["..."], "data": "<base58>"}
     ],
     "inner_instructions": {"0": [{...}, ...]}
   }
   `data` may also be a list of byte values, or base64 when the record sets
   "data_encoding": "base64". `inner_instructions` may also be a list of
   {"index": 0, "instructions": [...]}.

2. getTransaction results in `json` encoding (see record_from_rpc_transaction).
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import base58

from raydiumtx.core.exceptions import StreamRecordError
from raydiumtx.core.models import RawInstruction, StreamRecord

logger = logging.getLogger(__name__)


def _decode_data(value: Any, encoding: str) -> bytes:
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise StreamRecordError(f"Invalid instruction data bytes: {e}") from e

    if isinstance(value, str):
        if encoding == "base64":
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise StreamRecordError(f"Invalid base64 instruction data: {e}") from e
        try:
            return base58.b58decode(value)
        except ValueError as e:
            raise StreamRecordError(f"Invalid base58 instruction data: {e}") from e

    raise StreamRecordError(f"Unsupported instruction data type: {type(value).__name__}")


def instruction_from_dict(obj: Dict[str, Any], encoding: str = "base58") -> RawInstruction:
    if not isinstance(obj, dict):
        raise StreamRecordError(f"Instruction must be an object, got {type(obj).__name__}")

    program_id = obj.get("program_id")
    account_keys = obj.get("account_keys", [])
    if not isinstance(program_id, str) or not program_id:
        raise StreamRecordError("Instruction is missing program_id")
    if not isinstance(account_keys, list) or not all(isinstance(k, str) for k in account_keys):
        raise StreamRecordError("Instruction account_keys must be a list of strings")

    stack_height = obj.get("stack_height")
    if stack_height is not None and not isinstance(stack_height, int):
        raise StreamRecordError("Instruction stack_height must be an integer")

    return RawInstruction(
        program_id=program_id,
        account_keys=tuple(account_keys),
        data=_decode_data(obj.get("data", ""), encoding),
        stack_height=stack_height,
    )


def _parse_inner(raw: Any, encoding: str) -> Dict[int, Tuple[RawInstruction, ...]]:
    if raw is None:
        return {}

    groups: List[Tuple[Any, Any]]
    if isinstance(raw, dict):
        groups = list(raw.items())
    elif isinstance(raw, list):
        try:
            groups = [(group["index"], group["instructions"]) for group in raw]
        except (KeyError, TypeError) as e:
            raise StreamRecordError(f"Malformed inner instruction group: {e}") from e
    else:
        raise StreamRecordError("inner_instructions must be an object or a list")

    inner = {}
    for index, instructions in groups:
        try:
            key = int(index)
        except (TypeError, ValueError) as e:
            raise StreamRecordError(f"Invalid inner instruction index: {index!r}") from e
        if not isinstance(instructions, list):
            raise StreamRecordError(f"Inner instructions for {key} must be a list")
        inner[key] = tuple(instruction_from_dict(ix, encoding) for ix in instructions)
    return inner


def record_from_dict(obj: Dict[str, Any]) -> StreamRecord:
    """Build a StreamRecord from its JSON object form."""
    if not isinstance(obj, dict):
        raise StreamRecordError(f"Record must be an object, got {type(obj).__name__}")

    signature = obj.get("signature")
    if not isinstance(signature, str) or not signature:
        raise StreamRecordError("Record is missing signature")

    slot = obj.get("slot", 0)
    if not isinstance(slot, int):
        raise StreamRecordError("Record slot must be an integer")

    encoding = obj.get("data_encoding", "base58")
    if encoding not in ("base58", "base64"):
        raise StreamRecordError(f"Unsupported data_encoding: {encoding}")

    top_level = obj.get("top_level_instructions")
    if not isinstance(top_level, list):
        raise StreamRecordError("Record is missing top_level_instructions")

    return StreamRecord(
        signature=signature,
        slot=slot,
        top_level_instructions=tuple(instruction_from_dict(ix, encoding) for ix in top_level),
        inner_instructions=_parse_inner(obj.get("inner_instructions"), encoding),
    )


def parse_record_line(line: str) -> StreamRecord:
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as e:
        raise StreamRecordError(f"Invalid JSON: {e}") from e
    return record_from_dict(obj)


def iter_lines(lines: Iterable[str]) -> Iterator[str]:
    """Non-blank, stripped lines."""
    for line in lines:
        line = line.strip()
        if line:
            yield line


def _get_account_keys(message: Dict[str, Any], meta: Dict[str, Any]) -> List[str]:
    """Static account keys followed by lookup-table addresses."""
    account_keys = message.get("accountKeys", [])

    # Handle both legacy and versioned formats
    if account_keys and isinstance(account_keys[0], dict):
        keys = [acc.get("pubkey", "") for acc in account_keys]
    else:
        keys = list(account_keys)

    loaded = meta.get("loadedAddresses") or {}
    keys.extend(loaded.get("writable", []))
    keys.extend(loaded.get("readonly", []))
    return keys


def _compiled_instruction(
    ix: Dict[str, Any],
    account_keys: List[str],
    stack_height: Optional[int],
) -> RawInstruction:
    try:
        program_id = account_keys[ix["programIdIndex"]]
        accounts = tuple(account_keys[i] for i in ix.get("accounts", []))
    except (KeyError, IndexError, TypeError) as e:
        raise StreamRecordError(f"Instruction references a missing account: {e}") from e

    return RawInstruction(
        program_id=program_id,
        account_keys=accounts,
        data=_decode_data(ix.get("data", ""), "base58"),
        stack_height=ix.get("stackHeight") or stack_height,
    )


def record_from_rpc_transaction(tx: Dict[str, Any]) -> Optional[StreamRecord]:
    """
    Convert a getTransaction result (`json` encoding) to a StreamRecord.

    Failed transactions yield None.
    """
    meta = tx.get("meta") or {}
    transaction = tx.get("transaction") or {}
    signatures = transaction.get("signatures") or []
    if not signatures:
        raise StreamRecordError("Transaction has no signatures")
    signature = signatures[0]

    # Failed transactions moved no tokens
    if meta.get("err") is not None:
        logger.info(f"[STREAM] Transaction {signature[:12]}... failed (err={meta['err']}), skipping")
        return None

    message = transaction.get("message") or {}
    account_keys = _get_account_keys(message, meta)
    if not account_keys:
        raise StreamRecordError("Transaction has no account keys")

    top_level = tuple(
        _compiled_instruction(ix, account_keys, 1) for ix in message.get("instructions", [])
    )

    inner = {}
    for group in meta.get("innerInstructions") or []:
        inner[group["index"]] = tuple(
            _compiled_instruction(ix, account_keys, None)
            for ix in group.get("instructions", [])
        )

    return StreamRecord(
        signature=signature,
        slot=tx.get("slot", 0),
        top_level_instructions=top_level,
        inner_instructions=inner,
    )
