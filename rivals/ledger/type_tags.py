"""Parsing of Move type strings such as ``0xabc::planet::Planet<T>``.

Raw type strings from the ledger enter the system here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from . import bcs

PRIMITIVE_TAGS: dict[str, int] = {
    "bool": 0,
    "u8": 1,
    "u64": 2,
    "u128": 3,
    "address": 4,
    "signer": 5,
    "u16": 8,
    "u32": 9,
    "u256": 10,
}
VECTOR_TAG = 6
STRUCT_TAG = 7


@dataclass(frozen=True)
class StructType:
    """A fully-qualified Move struct type."""

    address: str
    module: str
    name: str
    type_params: tuple[TypeTag, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        base = f"{self.address}::{self.module}::{self.name}"
        if self.type_params:
            base += "<" + ", ".join(str(p) for p in self.type_params) + ">"
        return base

    def to_bcs(self) -> bytes:
        return (
            bcs.address(self.address)
            + bcs.string(self.module)
            + bcs.string(self.name)
            + bcs.vector(self.type_params, lambda p: p.to_bcs())
        )


@dataclass(frozen=True)
class TypeTag:
    """A Move type: primitive, vector or struct."""

    primitive: str | None = None
    element: TypeTag | None = None
    struct: StructType | None = None

    def __str__(self) -> str:
        if self.struct is not None:
            return str(self.struct)
        if self.element is not None:
            return f"vector<{self.element}>"
        return self.primitive or ""

    def to_bcs(self) -> bytes:
        if self.struct is not None:
            return bcs.uleb128(STRUCT_TAG) + self.struct.to_bcs()
        if self.element is not None:
            return bcs.uleb128(VECTOR_TAG) + self.element.to_bcs()
        if self.primitive is None:
            raise ValueError("Empty type tag")
        return bcs.uleb128(PRIMITIVE_TAGS[self.primitive])


def _split_params(body: str) -> list[str]:
    params: list[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            params.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        params.append(current.strip())
    return params


def parse_type_tag(text: str) -> TypeTag:
    text = text.strip()
    if text in PRIMITIVE_TAGS:
        return TypeTag(primitive=text)
    if text.startswith("vector<") and text.endswith(">"):
        return TypeTag(element=parse_type_tag(text[len("vector<"):-1]))
    return TypeTag(struct=parse_struct_type(text))


def parse_struct_type(text: str) -> StructType:
    """Parse ``addr::module::Name<params>`` into a StructType.

    The address is normalized to its 64-hex-digit form so types coming from
    different RPC responses compare equal.

    Raises:
        ValueError: If the string is not a struct type.
    """
    text = text.strip()
    params: tuple[TypeTag, ...] = ()
    head = text
    if "<" in text:
        if not text.endswith(">"):
            raise ValueError(f"Malformed type: {text!r}")
        head, _, rest = text.partition("<")
        params = tuple(parse_type_tag(p) for p in _split_params(rest[:-1]))
    parts = head.split("::")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Not a struct type: {text!r}")
    return StructType(
        address=bcs.normalize_address(parts[0]),
        module=parts[1],
        name=parts[2],
        type_params=params,
    )
