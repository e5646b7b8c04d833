"""
Action and access-key types.

Actions form a closed tagged union discriminated on ``kind``. The binary
encoder dispatches on the concrete class, so adding a variant means adding
both a model here and an encoder entry in :mod:`near_client.tx.codec`.
"""

from __future__ import annotations
from typing import Annotated, Any, Literal, Optional, Tuple, Union

from pydantic import BaseModel, BeforeValidator, Field

from ..crypto.ed25519 import PublicKey, Signature


def _coerce_public_key(value: Any) -> Any:
    if isinstance(value, str):
        return PublicKey.from_string(value)
    return value


def _coerce_signature(value: Any) -> Any:
    if isinstance(value, str):
        return Signature.from_string(value)
    return value


PublicKeyField = Annotated[PublicKey, BeforeValidator(_coerce_public_key)]
SignatureField = Annotated[Signature, BeforeValidator(_coerce_signature)]

_MODEL_CONFIG = {
    "frozen": True,
    "arbitrary_types_allowed": True,
    "populate_by_name": True,
}


# =============================================================================
# Access keys
# =============================================================================

class FullAccessPermission(BaseModel):
    """Key may sign any action."""
    kind: Literal["full_access"] = "full_access"

    model_config = _MODEL_CONFIG


class FunctionCallPermission(BaseModel):
    """
    Key restricted to calling methods on one receiver.

    An empty ``method_names`` allows every method on ``receiver_id``.
    ``allowance`` is the remaining fee budget in yoctoNEAR, None for unlimited.
    """
    kind: Literal["function_call"] = "function_call"
    allowance: Optional[int] = None
    receiver_id: str
    method_names: Tuple[str, ...] = ()

    model_config = _MODEL_CONFIG


AccessKeyPermission = Annotated[
    Union[FullAccessPermission, FunctionCallPermission],
    Field(discriminator="kind"),
]


class AccessKey(BaseModel):
    """Nonce and permission of one access key."""
    nonce: int = 0
    permission: AccessKeyPermission = Field(default_factory=FullAccessPermission)

    model_config = _MODEL_CONFIG

    @property
    def is_full_access(self) -> bool:
        return isinstance(self.permission, FullAccessPermission)


# =============================================================================
# Actions
# =============================================================================

class CreateAccount(BaseModel):
    kind: Literal["create_account"] = "create_account"

    model_config = _MODEL_CONFIG


class DeployContract(BaseModel):
    kind: Literal["deploy_contract"] = "deploy_contract"
    code: bytes

    model_config = _MODEL_CONFIG


class FunctionCall(BaseModel):
    """Call ``method_name`` on the receiver with raw ``args`` bytes."""
    kind: Literal["function_call"] = "function_call"
    method_name: str
    args: bytes = b""
    gas: int
    deposit: int = 0

    model_config = _MODEL_CONFIG


class Transfer(BaseModel):
    kind: Literal["transfer"] = "transfer"
    deposit: int

    model_config = _MODEL_CONFIG


class Stake(BaseModel):
    kind: Literal["stake"] = "stake"
    stake: int
    public_key: PublicKeyField

    model_config = _MODEL_CONFIG


class AddKey(BaseModel):
    kind: Literal["add_key"] = "add_key"
    public_key: PublicKeyField
    access_key: AccessKey = Field(default_factory=AccessKey)

    model_config = _MODEL_CONFIG


class DeleteKey(BaseModel):
    kind: Literal["delete_key"] = "delete_key"
    public_key: PublicKeyField

    model_config = _MODEL_CONFIG


class DeleteAccount(BaseModel):
    kind: Literal["delete_account"] = "delete_account"
    beneficiary_id: str

    model_config = _MODEL_CONFIG


NonDelegateAction = Annotated[
    Union[
        CreateAccount,
        DeployContract,
        FunctionCall,
        Transfer,
        Stake,
        AddKey,
        DeleteKey,
        DeleteAccount,
    ],
    Field(discriminator="kind"),
]


class DelegateAction(BaseModel):
    """
    Actions a sender authorizes a relayer to submit on its behalf.

    Signed separately from any transaction; see
    :func:`near_client.tx.codec.hash_delegate_action`.
    """
    sender_id: str
    receiver_id: str
    actions: Tuple[NonDelegateAction, ...]
    nonce: int
    max_block_height: int
    public_key: PublicKeyField

    model_config = _MODEL_CONFIG


class SignedDelegateAction(BaseModel):
    """A delegate action plus its signature; carried inside a transaction as an action."""
    kind: Literal["delegate"] = "delegate"
    delegate_action: DelegateAction
    signature: SignatureField

    model_config = _MODEL_CONFIG


Delegate = SignedDelegateAction

Action = Annotated[
    Union[
        CreateAccount,
        DeployContract,
        FunctionCall,
        Transfer,
        Stake,
        AddKey,
        DeleteKey,
        DeleteAccount,
        SignedDelegateAction,
    ],
    Field(discriminator="kind"),
]


# =============================================================================
# Helpers
# =============================================================================

def full_access_key() -> AccessKey:
    return AccessKey(nonce=0, permission=FullAccessPermission())


def function_call_access_key(receiver_id: str, method_names: Tuple[str, ...] = (),
                             allowance: Optional[int] = None) -> AccessKey:
    return AccessKey(
        nonce=0,
        permission=FunctionCallPermission(
            receiver_id=receiver_id,
            method_names=tuple(method_names),
            allowance=allowance,
        ),
    )
