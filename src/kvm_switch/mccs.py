"""
Parser for the MCCS capability string a monitor reports over DDC/CI.

A capability string is a nested, space separated list such as
"(prot(monitor)type(lcd)model(X1)cmds(01 02 03)vcp(02 10 60(01 0F 11)))".
"""
import logging
from dataclasses import dataclass, field
from typing import List, Tuple, Union

from kvm_switch.errors import (
    DanglingKeyError,
    InvalidStructureError,
    KeyNotAtomError,
    MalformedTopLevelError,
    UnexpectedEofError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Atom:
    text: str


@dataclass(frozen=True)
class ExprList:
    items: Tuple["Expression", ...] = ()

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


Expression = Union[Atom, ExprList]


@dataclass
class VcpCommand:
    """A VCP code and, for non-continuous features, its allowed values."""

    code: str
    values: List["VcpCommand"] = field(default_factory=list)


def clean_input(cap_string: str) -> str:
    return cap_string.replace("(", " ( ").replace(")", " ) ")


def tokenize(cap_string: str) -> List[str]:
    return clean_input(cap_string).split()


def read_from_tokens(tokens: List[str]) -> Tuple[Expression, int]:
    """
    Builds one expression from the start of the token list.
    Returns the expression and the number of tokens consumed.
    """
    # Open lists, innermost last
    stack: List[List[Expression]] = []

    for pos, token in enumerate(tokens):
        if token == "(":
            stack.append([])
            continue

        if token == ")":
            if not stack:
                raise InvalidStructureError("unexpected ')' in capability string")
            expr: Expression = ExprList(tuple(stack.pop()))
        else:
            expr = Atom(token)

        if not stack:
            return expr, pos + 1
        stack[-1].append(expr)

    raise UnexpectedEofError("unexpected end of capability string")


def parse_cap_string(cap_string: str) -> List[Tuple[str, Expression]]:
    """
    Parses a capability string into its top level (key, value) pairs.
    Order and duplicate keys are preserved.
    """
    tokens = tokenize(cap_string)
    root, consumed = read_from_tokens(tokens)

    if consumed < len(tokens):
        logger.debug(f"Ignoring {len(tokens) - consumed} trailing tokens after capability string")

    if not isinstance(root, ExprList):
        raise MalformedTopLevelError("top level expression must be a list")
    if len(root) % 2 != 0:
        raise DanglingKeyError(f"top level list has odd length {len(root)}: key without value")

    pairs = []
    items = iter(root)
    for key in items:
        if not isinstance(key, Atom):
            raise KeyNotAtomError(f"key isn't an atom: {format_expression(key)}")
        value = next(items, None)
        if value is None:
            raise DanglingKeyError(f"key '{key.text}' has no value")
        pairs.append((key.text, value))

    return pairs


def extract_atom(expression: Expression) -> str:
    """Returns the text of a single element list like "(lcd)", else ""."""
    if isinstance(expression, ExprList) and len(expression) > 0:
        first = expression.items[0]
        if isinstance(first, Atom):
            return first.text
    return ""


def extract_vcp_commands(expression: Expression) -> List[VcpCommand]:
    """
    Turns "(02 10 60(01 0F 11))" into commands 02, 10 and 60, where 60 carries
    the values 01, 0F and 11. A list only ever belongs to the atom right before it.
    """
    if not isinstance(expression, ExprList):
        return []

    commands = []
    items = expression.items
    for i, item in enumerate(items):
        if not isinstance(item, Atom):
            continue

        command = VcpCommand(code=item.text)
        following = items[i + 1] if i + 1 < len(items) else None
        if isinstance(following, ExprList):
            command.values = [
                VcpCommand(code=value.text) for value in following if isinstance(value, Atom)
            ]
        commands.append(command)

    return commands


def format_expression(expression: Expression) -> str:
    """Renders an expression back into capability string syntax."""
    if isinstance(expression, Atom):
        return expression.text

    parts: List[str] = []
    for item in expression:
        text = format_expression(item)
        # An atom directly before a list is written "60(01 02)", as monitors do
        if parts and isinstance(item, ExprList) and not parts[-1].endswith(")"):
            parts[-1] += text
        else:
            parts.append(text)
    return "(" + " ".join(parts) + ")"
