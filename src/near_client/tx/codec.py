"""
Transaction Codec

Deterministic binary encoding of transactions, signed transactions and
delegate actions, plus the hashes that get signed.

Layout (Borsh): fixed-width little-endian integers, u32 length prefixes for
strings, blobs and sequences, one discriminant byte ahead of each enum
variant. Field order is declaration order. Identical logical input always
yields identical bytes.
"""

from __future__ import annotations
import hashlib
import re
from typing import Callable, Dict, List, Tuple, Type

from ..codec.reader import BinaryReader
from ..codec.writer import BinaryWriter
from ..crypto.ed25519 import (
    Ed25519Error,
    KeyType,
    PUBLIC_KEY_LENGTHS,
    SIGNATURE_LENGTHS,
    PublicKey,
    Signature,
)
from ..runtime.errors import EncodingError
from .actions import (
    AccessKey,
    AddKey,
    CreateAccount,
    DelegateAction,
    DeleteAccount,
    DeleteKey,
    DeployContract,
    FullAccessPermission,
    FunctionCall,
    FunctionCallPermission,
    SignedDelegateAction,
    Stake,
    Transfer,
)
from .transaction import SignedTransaction, Transaction

# Protocol limits
MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64
MAX_METHOD_NAME_LEN = 256
MAX_ARGS_LEN = 4 * 1024 * 1024
MAX_CONTRACT_SIZE = 4 * 1024 * 1024
BLOCK_HASH_LEN = 32

# NEP-461 prefix for delegate actions, so their hash can never collide with a transaction's.
DELEGATE_ACTION_PREFIX = (1 << 30) + 366

ACCOUNT_ID_RE = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")


def is_valid_account_id(account_id: str) -> bool:
    return (
        MIN_ACCOUNT_ID_LEN <= len(account_id) <= MAX_ACCOUNT_ID_LEN
        and ACCOUNT_ID_RE.match(account_id) is not None
    )


def validate_account_id(account_id: str, field: str = "account_id") -> None:
    """
    Raises:
        EncodingError: If the id is not a valid account id
    """
    if not isinstance(account_id, str) or not is_valid_account_id(account_id):
        raise EncodingError(f"Invalid {field}: {account_id!r}", {"field": field})


def _check_len(name: str, value: bytes, maximum: int) -> None:
    if len(value) > maximum:
        raise EncodingError(f"{name} is {len(value)} bytes, maximum is {maximum}", {"field": name})


# =============================================================================
# Writers
# =============================================================================

def _write_public_key(w: BinaryWriter, public_key: PublicKey) -> None:
    w.u8(int(public_key.key_type))
    w.fixed_bytes(public_key.data, PUBLIC_KEY_LENGTHS[public_key.key_type], "public key")


def _write_signature(w: BinaryWriter, signature: Signature) -> None:
    w.u8(int(signature.key_type))
    w.fixed_bytes(signature.data, SIGNATURE_LENGTHS[signature.key_type], "signature")


def _write_method_name(w: BinaryWriter, method_name: str) -> None:
    raw = method_name.encode("utf-8")
    if not raw:
        raise EncodingError("Method name must not be empty", {"field": "method_name"})
    _check_len("method_name", raw, MAX_METHOD_NAME_LEN)
    w.len_prefixed_bytes(raw)


def _write_access_key(w: BinaryWriter, access_key: AccessKey) -> None:
    w.u64le(access_key.nonce)
    permission = access_key.permission
    if isinstance(permission, FunctionCallPermission):
        w.u8(0)
        w.optional_u128le(permission.allowance)
        validate_account_id(permission.receiver_id, "permission.receiver_id")
        w.string(permission.receiver_id)
        w.u32le(len(permission.method_names))
        for method_name in permission.method_names:
            _write_method_name(w, method_name)
    elif isinstance(permission, FullAccessPermission):
        w.u8(1)
    else:
        raise EncodingError(f"Unknown access key permission: {type(permission).__name__}")


def _write_create_account(w: BinaryWriter, action: CreateAccount) -> None:
    pass


def _write_deploy_contract(w: BinaryWriter, action: DeployContract) -> None:
    _check_len("code", action.code, MAX_CONTRACT_SIZE)
    w.len_prefixed_bytes(action.code)


def _write_function_call(w: BinaryWriter, action: FunctionCall) -> None:
    _write_method_name(w, action.method_name)
    _check_len("args", action.args, MAX_ARGS_LEN)
    w.len_prefixed_bytes(action.args)
    w.u64le(action.gas)
    w.u128le(action.deposit)


def _write_transfer(w: BinaryWriter, action: Transfer) -> None:
    w.u128le(action.deposit)


def _write_stake(w: BinaryWriter, action: Stake) -> None:
    w.u128le(action.stake)
    _write_public_key(w, action.public_key)


def _write_add_key(w: BinaryWriter, action: AddKey) -> None:
    _write_public_key(w, action.public_key)
    _write_access_key(w, action.access_key)


def _write_delete_key(w: BinaryWriter, action: DeleteKey) -> None:
    _write_public_key(w, action.public_key)


def _write_delete_account(w: BinaryWriter, action: DeleteAccount) -> None:
    validate_account_id(action.beneficiary_id, "beneficiary_id")
    w.string(action.beneficiary_id)


def _write_delegate_action(w: BinaryWriter, delegate_action: DelegateAction) -> None:
    validate_account_id(delegate_action.sender_id, "sender_id")
    validate_account_id(delegate_action.receiver_id, "receiver_id")
    w.string(delegate_action.sender_id)
    w.string(delegate_action.receiver_id)
    w.u32le(len(delegate_action.actions))
    for action in delegate_action.actions:
        _write_action(w, action, allow_delegate=False)
    w.u64le(delegate_action.nonce)
    w.u64le(delegate_action.max_block_height)
    _write_public_key(w, delegate_action.public_key)


def _write_signed_delegate(w: BinaryWriter, action: SignedDelegateAction) -> None:
    _write_delegate_action(w, action.delegate_action)
    _write_signature(w, action.signature)


# Discriminant and writer per action class; the discriminant order is part of the protocol.
ACTION_ENCODERS: Dict[Type, Tuple[int, Callable]] = {
    CreateAccount: (0, _write_create_account),
    DeployContract: (1, _write_deploy_contract),
    FunctionCall: (2, _write_function_call),
    Transfer: (3, _write_transfer),
    Stake: (4, _write_stake),
    AddKey: (5, _write_add_key),
    DeleteKey: (6, _write_delete_key),
    DeleteAccount: (7, _write_delete_account),
    SignedDelegateAction: (8, _write_signed_delegate),
}


def _write_action(w: BinaryWriter, action, allow_delegate: bool = True) -> None:
    entry = ACTION_ENCODERS.get(type(action))
    if entry is None:
        raise EncodingError(f"Unknown action type: {type(action).__name__}")
    if not allow_delegate and isinstance(action, SignedDelegateAction):
        raise EncodingError("Delegate actions cannot be nested inside a delegate action")
    discriminant, writer = entry
    w.u8(discriminant)
    writer(w, action)


def _write_transaction(w: BinaryWriter, tx: Transaction) -> None:
    validate_account_id(tx.signer_id, "signer_id")
    validate_account_id(tx.receiver_id, "receiver_id")
    w.string(tx.signer_id)
    _write_public_key(w, tx.public_key)
    w.u64le(tx.nonce)
    w.string(tx.receiver_id)
    w.fixed_bytes(tx.block_hash, BLOCK_HASH_LEN, "block_hash")
    w.u32le(len(tx.actions))
    for action in tx.actions:
        _write_action(w, action)


def encode_transaction(tx: Transaction) -> bytes:
    """
    Encode a transaction to its canonical bytes.

    Raises:
        EncodingError: If any field violates its size or range constraint
    """
    w = BinaryWriter()
    _write_transaction(w, tx)
    return w.to_bytes()


def hash_transaction(tx: Transaction) -> bytes:
    """SHA-256 of the canonical encoding; this is what gets signed."""
    return hashlib.sha256(encode_transaction(tx)).digest()


def encode_signed_transaction(signed: SignedTransaction) -> bytes:
    """Canonical bytes of a signed transaction, as broadcast to the network."""
    w = BinaryWriter()
    _write_transaction(w, signed.transaction)
    _write_signature(w, signed.signature)
    return w.to_bytes()


def encode_delegate_action(delegate_action: DelegateAction) -> bytes:
    w = BinaryWriter()
    _write_delegate_action(w, delegate_action)
    return w.to_bytes()


def hash_delegate_action(delegate_action: DelegateAction) -> bytes:
    """
    Signing hash of a delegate action.

    The u32 prefix keeps this hash disjoint from transaction hashes.
    """
    w = BinaryWriter()
    w.u32le(DELEGATE_ACTION_PREFIX)
    _write_delegate_action(w, delegate_action)
    return hashlib.sha256(w.to_bytes()).digest()


# =============================================================================
# Readers
# =============================================================================

def _read_key_type(r: BinaryReader) -> KeyType:
    tag = r.u8()
    try:
        return KeyType(tag)
    except ValueError:
        raise EncodingError(f"Unknown key type tag: {tag}")


def _read_public_key(r: BinaryReader) -> PublicKey:
    key_type = _read_key_type(r)
    try:
        return PublicKey(r.bytes(PUBLIC_KEY_LENGTHS[key_type]), key_type)
    except Ed25519Error as e:
        raise EncodingError(str(e), cause=e)


def _read_signature(r: BinaryReader) -> Signature:
    key_type = _read_key_type(r)
    return Signature(r.bytes(SIGNATURE_LENGTHS[key_type]), key_type)


def _read_string_list(r: BinaryReader) -> List[str]:
    return [r.string() for _ in range(r.u32le())]


def _read_access_key(r: BinaryReader) -> AccessKey:
    nonce = r.u64le()
    tag = r.u8()
    if tag == 0:
        allowance = r.optional_u128le()
        receiver_id = r.string()
        method_names = _read_string_list(r)
        permission = FunctionCallPermission(
            allowance=allowance,
            receiver_id=receiver_id,
            method_names=tuple(method_names),
        )
    elif tag == 1:
        permission = FullAccessPermission()
    else:
        raise EncodingError(f"Unknown access key permission tag: {tag}")
    return AccessKey(nonce=nonce, permission=permission)


def _read_delegate_action(r: BinaryReader) -> DelegateAction:
    sender_id = r.string()
    receiver_id = r.string()
    actions = [_read_action(r, allow_delegate=False) for _ in range(r.u32le())]
    return DelegateAction(
        sender_id=sender_id,
        receiver_id=receiver_id,
        actions=tuple(actions),
        nonce=r.u64le(),
        max_block_height=r.u64le(),
        public_key=_read_public_key(r),
    )


def _read_action(r: BinaryReader, allow_delegate: bool = True):
    tag = r.u8()
    if tag == 0:
        return CreateAccount()
    if tag == 1:
        return DeployContract(code=r.len_prefixed_bytes())
    if tag == 2:
        return FunctionCall(
            method_name=r.string(),
            args=r.len_prefixed_bytes(),
            gas=r.u64le(),
            deposit=r.u128le(),
        )
    if tag == 3:
        return Transfer(deposit=r.u128le())
    if tag == 4:
        return Stake(stake=r.u128le(), public_key=_read_public_key(r))
    if tag == 5:
        return AddKey(public_key=_read_public_key(r), access_key=_read_access_key(r))
    if tag == 6:
        return DeleteKey(public_key=_read_public_key(r))
    if tag == 7:
        return DeleteAccount(beneficiary_id=r.string())
    if tag == 8:
        if not allow_delegate:
            raise EncodingError("Delegate actions cannot be nested inside a delegate action")
        delegate_action = _read_delegate_action(r)
        return SignedDelegateAction(delegate_action=delegate_action, signature=_read_signature(r))
    raise EncodingError(f"Unknown action discriminant: {tag}")


def _read_transaction(r: BinaryReader) -> Transaction:
    signer_id = r.string()
    public_key = _read_public_key(r)
    nonce = r.u64le()
    receiver_id = r.string()
    block_hash = r.bytes(BLOCK_HASH_LEN)
    actions = [_read_action(r) for _ in range(r.u32le())]
    return Transaction(
        signer_id=signer_id,
        public_key=public_key,
        nonce=nonce,
        receiver_id=receiver_id,
        block_hash=block_hash,
        actions=tuple(actions),
    )


def decode_transaction(data: bytes) -> Transaction:
    """
    Decode canonical bytes back to a transaction.

    Raises:
        EncodingError: On truncated input, unknown tags or trailing bytes
    """
    r = BinaryReader(data)
    tx = _read_transaction(r)
    r.expect_eof()
    return tx


def decode_signed_transaction(data: bytes) -> SignedTransaction:
    r = BinaryReader(data)
    tx = _read_transaction(r)
    signature = _read_signature(r)
    r.expect_eof()
    return SignedTransaction(transaction=tx, signature=signature)
