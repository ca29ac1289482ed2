"""Typed programmable-transaction plans.

A TransactionPlan is an ordered list of commands (MoveCall, SplitCoins,
TransferObjects) over a deduplicated input table. Pure arguments are
typed values that BCS-encode deterministically; the argument order of each
MoveCall must match the target Move function's declared signature.

Usage:
    plan = TransactionPlan()
    planet = plan.move_call(
        f"{pkg}::planet::discover_planet",
        [plan.object(cap_id), String("Kepler"), U8(0), ...],
    )
    plan.share_object(planet.nested(0), f"{pkg}::planet::Planet")

The plan carries no sender, gas or object versions; the ledger adapter
resolves those when it serializes TransactionData.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from . import bcs
from .type_tags import parse_type_tag

SHARE_OBJECT_TARGET = "0x2::transfer::public_share_object"


# --- Pure values -----------------------------------------------------------


class PureValue:
    """Base for typed pure Move arguments."""

    move_type: str = ""

    def encode(self) -> bytes:
        raise NotImplementedError


@dataclass(frozen=True)
class String(PureValue):
    value: str
    move_type = "0x1::string::String"

    def encode(self) -> bytes:
        return bcs.string(self.value)


@dataclass(frozen=True)
class U8(PureValue):
    value: int
    move_type = "u8"

    def __post_init__(self) -> None:
        bcs.u8(self.value)

    def encode(self) -> bytes:
        return bcs.u8(self.value)


@dataclass(frozen=True)
class U64(PureValue):
    value: int
    move_type = "u64"

    def __post_init__(self) -> None:
        bcs.u64(self.value)

    def encode(self) -> bytes:
        return bcs.u64(self.value)


@dataclass(frozen=True)
class Bool(PureValue):
    value: bool
    move_type = "bool"

    def encode(self) -> bytes:
        return bcs.boolean(self.value)


@dataclass(frozen=True)
class Address(PureValue):
    value: str
    move_type = "address"

    def encode(self) -> bytes:
        return bcs.address(self.value)


@dataclass(frozen=True)
class Id(PureValue):
    """An object ID passed by value (``0x2::object::ID``), same layout as address."""

    value: str
    move_type = "0x2::object::ID"

    def encode(self) -> bytes:
        return bcs.address(self.value)


@dataclass(frozen=True)
class OptionU8(PureValue):
    value: int | None
    move_type = "0x1::option::Option<u8>"

    def __post_init__(self) -> None:
        if self.value is not None:
            bcs.u8(self.value)

    def encode(self) -> bytes:
        return bcs.option(self.value, bcs.u8)


@dataclass(frozen=True)
class OptionAddress(PureValue):
    value: str | None
    move_type = "0x1::option::Option<address>"

    def encode(self) -> bytes:
        return bcs.option(self.value, bcs.address)


@dataclass(frozen=True)
class VectorU64(PureValue):
    values: tuple[int, ...] = ()
    move_type = "vector<u64>"

    def encode(self) -> bytes:
        return bcs.vector(self.values, bcs.u64)


@dataclass(frozen=True)
class VectorU8(PureValue):
    values: bytes = b""
    move_type = "vector<u8>"

    def encode(self) -> bytes:
        return bcs.byte_vector(self.values)


# --- Arguments -------------------------------------------------------------


@dataclass(frozen=True)
class ObjectInput:
    """An on-chain object passed by reference; version resolved at submit."""

    object_id: str


@dataclass(frozen=True)
class GasCoin:
    pass


@dataclass(frozen=True)
class Input:
    index: int


@dataclass(frozen=True)
class Result:
    """The whole result of an earlier command."""

    index: int

    def nested(self, sub_index: int) -> NestedResult:
        return NestedResult(self.index, sub_index)


@dataclass(frozen=True)
class NestedResult:
    index: int
    sub_index: int


Argument = Union[GasCoin, Input, Result, NestedResult]
ArgumentLike = Union[Argument, PureValue, ObjectInput]
InputValue = Union[PureValue, ObjectInput]


def encode_argument(arg: Argument) -> bytes:
    if isinstance(arg, GasCoin):
        return bcs.uleb128(0)
    if isinstance(arg, Input):
        return bcs.uleb128(1) + bcs.u16(arg.index)
    if isinstance(arg, Result):
        return bcs.uleb128(2) + bcs.u16(arg.index)
    return bcs.uleb128(3) + bcs.u16(arg.index) + bcs.u16(arg.sub_index)


# --- Commands --------------------------------------------------------------


@dataclass(frozen=True)
class MoveCall:
    target: str
    arguments: tuple[Argument, ...]
    type_arguments: tuple[str, ...] = ()

    @property
    def package(self) -> str:
        return self.target.split("::")[0]

    @property
    def module(self) -> str:
        return self.target.split("::")[1]

    @property
    def function(self) -> str:
        return self.target.split("::")[2]

    def encode(self) -> bytes:
        return (
            bcs.uleb128(0)
            + bcs.address(self.package)
            + bcs.string(self.module)
            + bcs.string(self.function)
            + bcs.vector(self.type_arguments, lambda t: parse_type_tag(t).to_bcs())
            + bcs.vector(self.arguments, encode_argument)
        )


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: Argument

    def encode(self) -> bytes:
        return (
            bcs.uleb128(1)
            + bcs.vector(self.objects, encode_argument)
            + encode_argument(self.recipient)
        )


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...]

    def encode(self) -> bytes:
        return (
            bcs.uleb128(2)
            + encode_argument(self.coin)
            + bcs.vector(self.amounts, encode_argument)
        )


Command = Union[MoveCall, TransferObjects, SplitCoins]


@dataclass
class TransactionPlan:
    """Builder for one programmable transaction."""

    inputs: list[InputValue] = field(default_factory=list)
    commands: list[Command] = field(default_factory=list)

    def object(self, object_id: str) -> ObjectInput:
        return ObjectInput(bcs.normalize_address(object_id))

    @property
    def gas(self) -> GasCoin:
        return GasCoin()

    def _input(self, value: InputValue) -> Input:
        # Object inputs must be unique within a transaction
        if isinstance(value, ObjectInput):
            for i, existing in enumerate(self.inputs):
                if existing == value:
                    return Input(i)
        self.inputs.append(value)
        return Input(len(self.inputs) - 1)

    def _arg(self, value: ArgumentLike) -> Argument:
        if isinstance(value, (PureValue, ObjectInput)):
            return self._input(value)
        return value

    def _add(self, command: Command) -> Result:
        self.commands.append(command)
        return Result(len(self.commands) - 1)

    def move_call(
        self,
        target: str,
        arguments: list[ArgumentLike],
        type_arguments: list[str] | None = None,
    ) -> Result:
        args = tuple(self._arg(a) for a in arguments)
        return self._add(MoveCall(target, args, tuple(type_arguments or ())))

    def split_coins(self, coin: ArgumentLike, amounts: list[int]) -> list[NestedResult]:
        """Split each amount off ``coin``; returns one handle per new coin."""
        result = self._add(
            SplitCoins(self._arg(coin), tuple(self._arg(U64(a)) for a in amounts))
        )
        return [result.nested(i) for i in range(len(amounts))]

    def transfer_objects(self, objects: list[ArgumentLike], recipient: str) -> Result:
        return self._add(
            TransferObjects(
                tuple(self._arg(o) for o in objects), self._arg(Address(recipient))
            )
        )

    def share_object(self, obj: ArgumentLike, object_type: str) -> Result:
        return self.move_call(SHARE_OBJECT_TARGET, [obj], [object_type])

    def resolve(self, arg: Argument) -> InputValue | Argument:
        """Map an Input argument back to its pure value or object reference."""
        if isinstance(arg, Input):
            return self.inputs[arg.index]
        return arg

    def move_calls(self) -> list[MoveCall]:
        return [c for c in self.commands if isinstance(c, MoveCall)]

    def object_ids(self) -> list[str]:
        return [i.object_id for i in self.inputs if isinstance(i, ObjectInput)]
