# Typed Solidity AST consumed by the detectors. One model per node kind, discriminated on `kind`.
from __future__ import annotations

from typing import Annotated, Callable, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from packages.schema.models import Line


class SourceLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int
    column: int = 0


class AstNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    loc: Optional[SourceLocation] = None

    @property
    def line(self) -> Line:
        return self.loc.line if self.loc is not None else "unknown"

    def children(self) -> Iterator["Node"]:
        """Yield child nodes in field declaration order (source order)."""

        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, AstNode):
                yield value
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, AstNode):
                        yield item


# --- declarations ---------------------------------------------------------


class SourceUnit(AstNode):
    kind: Literal["SourceUnit"] = "SourceUnit"
    nodes: List["Node"] = Field(default_factory=list)


class PragmaDirective(AstNode):
    kind: Literal["PragmaDirective"] = "PragmaDirective"
    name: str
    value: str = ""


class ImportDirective(AstNode):
    kind: Literal["ImportDirective"] = "ImportDirective"
    path: str


class ContractDefinition(AstNode):
    kind: Literal["ContractDefinition"] = "ContractDefinition"
    name: str
    members: List["Node"] = Field(default_factory=list)


class ModifierInvocation(AstNode):
    kind: Literal["ModifierInvocation"] = "ModifierInvocation"
    name: str


Visibility = Literal["public", "external", "internal", "private"]


class FunctionDefinition(AstNode):
    kind: Literal["FunctionDefinition"] = "FunctionDefinition"
    name: str = ""
    visibility: Visibility = "public"
    mutability: Optional[str] = None
    modifiers: List[ModifierInvocation] = Field(default_factory=list)
    is_constructor: bool = False
    is_fallback: bool = False
    is_receive: bool = False
    body: Optional["Block"] = None

    @property
    def modifier_names(self) -> List[str]:
        return [modifier.name for modifier in self.modifiers]


class ModifierDefinition(AstNode):
    kind: Literal["ModifierDefinition"] = "ModifierDefinition"
    name: str
    body: Optional["Block"] = None


class TypeName(AstNode):
    kind: Literal["TypeName"] = "TypeName"
    category: Literal["elementary", "mapping", "array", "user_defined", "function"] = "elementary"
    text: str = ""


class StateVariable(AstNode):
    kind: Literal["StateVariable"] = "StateVariable"
    name: str
    type_name: TypeName = Field(default_factory=TypeName)
    visibility: str = "internal"
    is_constant: bool = False


class StateVariableDeclaration(AstNode):
    kind: Literal["StateVariableDeclaration"] = "StateVariableDeclaration"
    variables: List[StateVariable] = Field(default_factory=list)
    initial_value: Optional["Node"] = None


class UsingForDeclaration(AstNode):
    kind: Literal["UsingForDeclaration"] = "UsingForDeclaration"
    library_name: str


# --- statements -----------------------------------------------------------


class Block(AstNode):
    kind: Literal["Block"] = "Block"
    statements: List["Node"] = Field(default_factory=list)


class ExpressionStatement(AstNode):
    kind: Literal["ExpressionStatement"] = "ExpressionStatement"
    expression: Optional["Node"] = None


class IfStatement(AstNode):
    kind: Literal["IfStatement"] = "IfStatement"
    condition: Optional["Node"] = None
    true_body: Optional["Node"] = None
    false_body: Optional["Node"] = None


class ForStatement(AstNode):
    kind: Literal["ForStatement"] = "ForStatement"
    init: Optional["Node"] = None
    condition: Optional["Node"] = None
    loop_expression: Optional["Node"] = None
    body: Optional["Node"] = None


class WhileStatement(AstNode):
    kind: Literal["WhileStatement"] = "WhileStatement"
    condition: Optional["Node"] = None
    body: Optional["Node"] = None


class OtherStatement(AstNode):
    """Any statement shape the detectors only need to look through."""

    kind: Literal["OtherStatement"] = "OtherStatement"
    label: str
    nested: List["Node"] = Field(default_factory=list)


# --- expressions ----------------------------------------------------------


class BinaryOperation(AstNode):
    kind: Literal["BinaryOperation"] = "BinaryOperation"
    operator: str
    left: Optional["Node"] = None
    right: Optional["Node"] = None


class Assignment(AstNode):
    kind: Literal["Assignment"] = "Assignment"
    operator: str = "="
    left: Optional["Node"] = None
    right: Optional["Node"] = None


class UnaryOperation(AstNode):
    kind: Literal["UnaryOperation"] = "UnaryOperation"
    operator: str
    operand: Optional["Node"] = None
    is_prefix: bool = True


class FunctionCall(AstNode):
    kind: Literal["FunctionCall"] = "FunctionCall"
    callee: Optional["Node"] = None
    arguments: List["Node"] = Field(default_factory=list)

    @property
    def identifiers(self) -> List[str]:
        """Identifier chain the callee references, outermost first.

        ``msg.sender.call(...)`` gives ``["msg", "sender", "call"]``.
        """

        chain: List[str] = []
        node = self.callee
        while node is not None:
            if isinstance(node, Identifier):
                chain.append(node.name)
                break
            if isinstance(node, MemberAccess):
                chain.append(node.member)
                node = node.expression
            elif isinstance(node, FunctionCall):
                node = node.callee
            elif isinstance(node, IndexAccess):
                node = node.base
            elif isinstance(node, OtherExpression) and node.nested:
                node = node.nested[0]
            else:
                break
        chain.reverse()
        return chain


class MemberAccess(AstNode):
    kind: Literal["MemberAccess"] = "MemberAccess"
    expression: Optional["Node"] = None
    member: str


class IndexAccess(AstNode):
    kind: Literal["IndexAccess"] = "IndexAccess"
    base: Optional["Node"] = None
    index: Optional["Node"] = None


class Identifier(AstNode):
    kind: Literal["Identifier"] = "Identifier"
    name: str


class LiteralValue(AstNode):
    kind: Literal["Literal"] = "Literal"
    value: str = ""


class OtherExpression(AstNode):
    """Expressions without detector-specific meaning (tuples, conditionals, `new`, ...)."""

    kind: Literal["OtherExpression"] = "OtherExpression"
    label: str
    nested: List["Node"] = Field(default_factory=list)


Node = Annotated[
    Union[
        SourceUnit,
        PragmaDirective,
        ImportDirective,
        ContractDefinition,
        ModifierInvocation,
        FunctionDefinition,
        ModifierDefinition,
        TypeName,
        StateVariable,
        StateVariableDeclaration,
        UsingForDeclaration,
        Block,
        ExpressionStatement,
        IfStatement,
        ForStatement,
        WhileStatement,
        OtherStatement,
        BinaryOperation,
        Assignment,
        UnaryOperation,
        FunctionCall,
        MemberAccess,
        IndexAccess,
        Identifier,
        LiteralValue,
        OtherExpression,
    ],
    Field(discriminator="kind"),
]

STATEMENT_KINDS = (
    Block,
    ExpressionStatement,
    IfStatement,
    ForStatement,
    WhileStatement,
    OtherStatement,
)

for _model in (
    SourceUnit,
    ContractDefinition,
    ModifierInvocation,
    FunctionDefinition,
    ModifierDefinition,
    StateVariable,
    StateVariableDeclaration,
    Block,
    ExpressionStatement,
    IfStatement,
    ForStatement,
    WhileStatement,
    OtherStatement,
    BinaryOperation,
    Assignment,
    UnaryOperation,
    FunctionCall,
    MemberAccess,
    IndexAccess,
    OtherExpression,
):
    _model.model_rebuild()


def walk(
    root: Optional[AstNode],
    descend: Optional[Callable[[AstNode], bool]] = None,
) -> Iterator[AstNode]:
    """Depth-first, pre-order walk over ``root`` and its descendants.

    ``descend`` decides whether the children of a visited node are entered;
    the node itself is always yielded. An explicit stack keeps deeply nested
    input from exhausting the interpreter stack.
    """

    if root is None:
        return
    stack: List[AstNode] = [root]
    while stack:
        node = stack.pop()
        yield node
        if descend is not None and node is not root and not descend(node):
            continue
        stack.extend(reversed(list(node.children())))


def find(
    root: Optional[AstNode],
    predicate: Callable[[AstNode], bool],
    descend: Optional[Callable[[AstNode], bool]] = None,
) -> List[AstNode]:
    return [node for node in walk(root, descend) if predicate(node)]


def contains(
    root: Optional[AstNode],
    predicate: Callable[[AstNode], bool],
    descend: Optional[Callable[[AstNode], bool]] = None,
) -> bool:
    return any(predicate(node) for node in walk(root, descend))


def render(node: Optional[AstNode]) -> str:
    """Compact source-like text of an expression, for textual heuristics."""

    if node is None:
        return ""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, LiteralValue):
        return node.value
    if isinstance(node, MemberAccess):
        return f"{render(node.expression)}.{node.member}"
    if isinstance(node, IndexAccess):
        return f"{render(node.base)}[{render(node.index)}]"
    if isinstance(node, FunctionCall):
        args = ", ".join(render(arg) for arg in node.arguments)
        return f"{render(node.callee)}({args})"
    if isinstance(node, (BinaryOperation, Assignment)):
        return f"{render(node.left)} {node.operator} {render(node.right)}"
    if isinstance(node, UnaryOperation):
        operand = render(node.operand)
        if node.operator == "delete":
            return f"delete {operand}"
        return f"{node.operator}{operand}" if node.is_prefix else f"{operand}{node.operator}"
    if isinstance(node, TypeName):
        return node.text
    return " ".join(render(child) for child in node.children())
