# Adapter boundary: call the solidity-parser package and normalize its dict AST to our schema.
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from antlr4 import CommonTokenStream, InputStream
from antlr4.error.ErrorListener import ErrorListener
from solidity_parser import parser as solidity_parser
from solidity_parser.solidity_antlr4.SolidityLexer import SolidityLexer
from solidity_parser.solidity_antlr4.SolidityParser import SolidityParser

from packages.schema.ast import (
    Assignment,
    AstNode,
    BinaryOperation,
    Block,
    ContractDefinition,
    ExpressionStatement,
    ForStatement,
    FunctionCall,
    FunctionDefinition,
    Identifier,
    IfStatement,
    ImportDirective,
    IndexAccess,
    LiteralValue,
    MemberAccess,
    ModifierDefinition,
    ModifierInvocation,
    OtherExpression,
    OtherStatement,
    PragmaDirective,
    SourceLocation,
    SourceUnit,
    StateVariable,
    StateVariableDeclaration,
    TypeName,
    UnaryOperation,
    UsingForDeclaration,
    WhileStatement,
    render,
)

logger = logging.getLogger(__name__)

Raw = Dict[str, Any]

ASSIGNMENT_OPERATORS = {"=", "+=", "-=", "*=", "/=", "%=", "|=", "&=", "^=", "<<=", ">>="}
VISIBILITIES = {"public", "external", "internal", "private"}
STATEMENT_TYPES = {
    "Block",
    "ExpressionStatement",
    "IfStatement",
    "ForStatement",
    "WhileStatement",
    "DoWhileStatement",
    "ReturnStatement",
    "EmitStatement",
    "RevertStatement",
    "VariableDeclarationStatement",
    "InlineAssemblyStatement",
    "TryStatement",
    "UncheckedStatement",
    "ContinueStatement",
    "BreakStatement",
    "ThrowStatement",
}
_NON_CHILD_KEYS = {"type", "loc", "range", "name"}
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_\$][A-Za-z0-9_\$]*$")


class ParseError(ValueError):
    """Source could not be read or turned into an AST."""


class _SyntaxErrors(ErrorListener):
    """Collects ANTLR syntax errors; the default listener only prints them."""

    def __init__(self) -> None:
        super().__init__()
        self.messages: List[str] = []

    def syntaxError(self, recognizer, offendingSymbol, line, column, msg, e):
        self.messages.append(f"line {line}:{column} {msg}")


class _AstBuilder(solidity_parser.AstVisitor):
    """solidity-parser's visitor, plus call options: ``target.call{value: v}(...)``."""

    def visitExpression(self, ctx):
        if (
            ctx.getChildCount() == 4
            and ctx.getChild(1).getText() == "{"
            and ctx.getChild(3).getText() == "}"
        ):
            options = ctx.nameValueList().nameValue()
            return solidity_parser.Node(
                ctx=ctx,
                type="FunctionCallOptions",
                expression=self.visit(ctx.getChild(0)),
                names=[option.identifier().getText() for option in options],
                arguments=[self.visit(option.expression()) for option in options],
            )
        return super().visitExpression(ctx)


def parse_file(path: Union[str, Path]) -> SourceUnit:
    source_path = Path(path)
    try:
        text = source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Cannot read {source_path}: {exc}") from exc
    return parse_source(text)


def parse_source(text: str) -> SourceUnit:
    raw = _parse_raw(text)
    if not isinstance(raw, dict) or raw.get("type") != "SourceUnit":
        raise ParseError("Failed to parse Solidity source: parser returned no source unit")

    unit = normalize(raw)
    if text.strip() and not unit.nodes:
        raise ParseError("Failed to parse Solidity source: no declarations found")
    logger.debug("Parsed source unit with %s top-level nodes", len(unit.nodes))
    return unit  # type: ignore[return-value]


def _parse_raw(text: str) -> Any:
    """Run the ANTLR grammar, reject any syntax error, then build the dict AST."""

    errors = _SyntaxErrors()
    try:
        lexer = SolidityLexer(InputStream(text))
        lexer.removeErrorListeners()
        lexer.addErrorListener(errors)
        parser = SolidityParser(CommonTokenStream(lexer))
        parser.removeErrorListeners()
        parser.addErrorListener(errors)
        tree = parser.sourceUnit()
    except Exception as exc:
        raise ParseError(f"Failed to parse Solidity source: {exc}") from exc

    if errors.messages:
        if len(errors.messages) > 1:
            logger.debug("Further syntax errors: %s", "; ".join(errors.messages[1:]))
        raise ParseError(f"Failed to parse Solidity source: {errors.messages[0]}")

    # Class-level switch read by solidity-parser's Node constructor.
    solidity_parser.Node.ENABLE_LOC = True
    try:
        return _AstBuilder().visit(tree)
    except Exception as exc:
        raise ParseError(f"Failed to parse Solidity source: {exc}") from exc


def normalize(raw: Any) -> Optional[AstNode]:
    """Convert one solidity-parser node (a dict with a ``type`` key) into a typed node."""

    if not isinstance(raw, dict):
        return None
    node_type = raw.get("type")
    handler = _HANDLERS.get(node_type)
    if handler is not None:
        return handler(raw)
    if node_type in STATEMENT_TYPES:
        return OtherStatement(label=str(node_type), nested=_generic_children(raw), loc=_loc(raw))
    return OtherExpression(label=str(node_type or "Unknown"), nested=_generic_children(raw), loc=_loc(raw))


# --- accessors -------------------------------------------------------------


def get_contracts(unit: Optional[SourceUnit]) -> List[ContractDefinition]:
    if unit is None:
        return []
    return [node for node in unit.nodes if isinstance(node, ContractDefinition)]


def get_functions(contract: Optional[ContractDefinition]) -> List[FunctionDefinition]:
    if contract is None:
        return []
    return [node for node in contract.members if isinstance(node, FunctionDefinition)]


def get_modifiers(contract: Optional[ContractDefinition]) -> List[ModifierDefinition]:
    if contract is None:
        return []
    return [node for node in contract.members if isinstance(node, ModifierDefinition)]


def get_state_variables(contract: Optional[ContractDefinition]) -> List[StateVariable]:
    if contract is None:
        return []
    return [
        variable
        for node in contract.members
        if isinstance(node, StateVariableDeclaration)
        for variable in node.variables
    ]


def get_using_for(contract: Optional[ContractDefinition]) -> List[UsingForDeclaration]:
    if contract is None:
        return []
    return [node for node in contract.members if isinstance(node, UsingForDeclaration)]


def get_pragma(unit: Optional[SourceUnit], name: str = "solidity") -> Optional[PragmaDirective]:
    if unit is None:
        return None
    for node in unit.nodes:
        if isinstance(node, PragmaDirective) and node.name == name:
            return node
    return None


def get_imports(unit: Optional[SourceUnit]) -> List[ImportDirective]:
    if unit is None:
        return []
    return [node for node in unit.nodes if isinstance(node, ImportDirective)]


# --- node handlers ----------------------------------------------------------


def _loc(raw: Raw) -> Optional[SourceLocation]:
    loc = raw.get("loc")
    if not isinstance(loc, dict):
        return None
    start = loc.get("start") or {}
    line = start.get("line")
    if not isinstance(line, int):
        return None
    column = start.get("column")
    return SourceLocation(line=line, column=column if isinstance(column, int) else 0)


def _many(values: Any) -> List[AstNode]:
    if not isinstance(values, list):
        values = [values]
    nodes = [normalize(value) for value in values]
    return [node for node in nodes if node is not None]


def _generic_children(raw: Raw) -> List[AstNode]:
    children: List[AstNode] = []
    for key, value in raw.items():
        if key in _NON_CHILD_KEYS:
            continue
        if isinstance(value, dict):
            node = normalize(value)
            if node is not None:
                children.append(node)
        elif isinstance(value, list):
            children.extend(_many(value))
    return children


def _block(raw: Any) -> Optional[Block]:
    node = normalize(raw)
    if node is None:
        return None
    if isinstance(node, Block):
        return node
    return Block(statements=[node], loc=node.loc)


def _source_unit(raw: Raw) -> SourceUnit:
    return SourceUnit(nodes=_many(raw.get("children") or []), loc=_loc(raw))


def _pragma(raw: Raw) -> PragmaDirective:
    return PragmaDirective(name=str(raw.get("name") or ""), value=str(raw.get("value") or ""), loc=_loc(raw))


def _import(raw: Raw) -> ImportDirective:
    return ImportDirective(path=str(raw.get("path") or ""), loc=_loc(raw))


def _contract(raw: Raw) -> ContractDefinition:
    name = str(raw.get("name") or "")
    members = _many(raw.get("subNodes") or [])
    # Pre-0.4.22 constructors are functions named after their contract.
    members = [
        member.model_copy(update={"is_constructor": True})
        if isinstance(member, FunctionDefinition) and name and member.name == name
        else member
        for member in members
    ]
    return ContractDefinition(
        name=name,
        members=members,
        loc=_loc(raw),
    )


def _function(raw: Raw) -> FunctionDefinition:
    is_constructor = bool(raw.get("isConstructor"))
    visibility = raw.get("visibility")
    mutability = raw.get("stateMutability")
    if mutability == "constant":
        mutability = "view"
    body = raw.get("body")
    name = "constructor" if is_constructor else str(raw.get("name") or "")
    is_fallback = bool(raw.get("isFallback"))
    if not is_constructor and not _IDENTIFIER_RE.match(name):
        # Unnamed pre-0.6 fallbacks come back with the whole definition text as their name.
        name, is_fallback = "", True
    return FunctionDefinition(
        name=name,
        visibility=visibility if visibility in VISIBILITIES else "public",
        mutability=mutability or None,
        modifiers=[
            ModifierInvocation(name=str(item.get("name") or ""), loc=_loc(item))
            for item in raw.get("modifiers") or []
            if isinstance(item, dict)
        ],
        is_constructor=is_constructor,
        is_fallback=is_fallback,
        is_receive=bool(raw.get("isReceive")),
        body=_block(body) if isinstance(body, dict) else None,
        loc=_loc(raw),
    )


def _modifier(raw: Raw) -> ModifierDefinition:
    body = raw.get("body")
    return ModifierDefinition(
        name=str(raw.get("name") or ""),
        body=_block(body) if isinstance(body, dict) else None,
        loc=_loc(raw),
    )


def _type_name(raw: Any) -> TypeName:
    if not isinstance(raw, dict):
        return TypeName()
    node_type = raw.get("type")
    if node_type == "Mapping":
        key = _type_name(raw.get("keyType")).text
        value = _type_name(raw.get("valueType")).text
        return TypeName(category="mapping", text=f"mapping({key} => {value})", loc=_loc(raw))
    if node_type == "ArrayTypeName":
        base = _type_name(raw.get("baseTypeName")).text
        length = raw.get("length")
        size = render(normalize(length)) if isinstance(length, dict) else ""
        return TypeName(category="array", text=f"{base}[{size}]", loc=_loc(raw))
    if node_type == "UserDefinedTypeName":
        return TypeName(category="user_defined", text=str(raw.get("namePath") or ""), loc=_loc(raw))
    if node_type == "FunctionTypeName":
        return TypeName(category="function", text="function", loc=_loc(raw))
    return TypeName(category="elementary", text=str(raw.get("name") or ""), loc=_loc(raw))


def _state_variables(raw: Raw) -> StateVariableDeclaration:
    variables = []
    for item in raw.get("variables") or []:
        if not isinstance(item, dict):
            continue
        variables.append(
            StateVariable(
                name=str(item.get("name") or ""),
                type_name=_type_name(item.get("typeName")),
                visibility=str(item.get("visibility") or "default"),
                is_constant=bool(item.get("isDeclaredConst")),
                loc=_loc(item),
            )
        )
    initial = raw.get("initialValue")
    return StateVariableDeclaration(
        variables=variables,
        initial_value=normalize(initial) if isinstance(initial, dict) else None,
        loc=_loc(raw),
    )


def _using_for(raw: Raw) -> UsingForDeclaration:
    return UsingForDeclaration(library_name=str(raw.get("libraryName") or ""), loc=_loc(raw))


def _block_node(raw: Raw) -> Block:
    return Block(statements=_many(raw.get("statements") or []), loc=_loc(raw))


def _expression_statement(raw: Raw) -> ExpressionStatement:
    return ExpressionStatement(expression=normalize(raw.get("expression")), loc=_loc(raw))


def _if(raw: Raw) -> IfStatement:
    return IfStatement(
        condition=normalize(raw.get("condition")),
        true_body=normalize(_first(raw, "TrueBody", "trueBody")),
        false_body=normalize(_first(raw, "FalseBody", "falseBody")),
        loc=_loc(raw),
    )


def _for(raw: Raw) -> ForStatement:
    return ForStatement(
        init=normalize(raw.get("initExpression")),
        condition=normalize(raw.get("conditionExpression")),
        loop_expression=normalize(raw.get("loopExpression")),
        body=normalize(raw.get("body")),
        loc=_loc(raw),
    )


def _while(raw: Raw) -> WhileStatement:
    return WhileStatement(
        condition=normalize(raw.get("condition")),
        body=normalize(raw.get("body")),
        loc=_loc(raw),
    )


def _binary(raw: Raw) -> Union[Assignment, BinaryOperation]:
    operator = str(raw.get("operator") or "")
    left = normalize(raw.get("left"))
    right = normalize(raw.get("right"))
    if operator in ASSIGNMENT_OPERATORS:
        return Assignment(operator=operator, left=left, right=right, loc=_loc(raw))
    return BinaryOperation(operator=operator, left=left, right=right, loc=_loc(raw))


def _unary(raw: Raw) -> UnaryOperation:
    return UnaryOperation(
        operator=str(raw.get("operator") or ""),
        operand=normalize(raw.get("subExpression")),
        is_prefix=bool(raw.get("isPrefix", True)),
        loc=_loc(raw),
    )


def _call(raw: Raw) -> FunctionCall:
    return FunctionCall(
        callee=normalize(raw.get("expression")),
        arguments=_many(raw.get("arguments") or []),
        loc=_loc(raw),
    )


def _call_options(raw: Raw) -> OtherExpression:
    # Callee first: FunctionCall.identifiers follows nested[0].
    return OtherExpression(
        label="FunctionCallOptions",
        nested=_many([raw.get("expression"), *(raw.get("arguments") or [])]),
        loc=_loc(raw),
    )


def _member(raw: Raw) -> MemberAccess:
    return MemberAccess(
        expression=normalize(raw.get("expression")),
        member=str(raw.get("memberName") or ""),
        loc=_loc(raw),
    )


def _index(raw: Raw) -> IndexAccess:
    return IndexAccess(base=normalize(raw.get("base")), index=normalize(raw.get("index")), loc=_loc(raw))


def _identifier(raw: Raw) -> Identifier:
    return Identifier(name=str(raw.get("name") or ""), loc=_loc(raw))


def _literal(raw: Raw) -> LiteralValue:
    value = _first(raw, "number", "value", "name")
    return LiteralValue(value="" if value is None else str(value), loc=_loc(raw))


def _elementary_expression(raw: Raw) -> AstNode:
    return normalize(raw.get("typeName")) or Identifier(name="", loc=_loc(raw))


def _elementary(raw: Raw) -> Identifier:
    return Identifier(name=str(raw.get("name") or ""), loc=_loc(raw))


def _first(raw: Raw, *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


_HANDLERS: Dict[Optional[str], Callable[[Raw], AstNode]] = {
    "SourceUnit": _source_unit,
    "PragmaDirective": _pragma,
    "ImportDirective": _import,
    "ContractDefinition": _contract,
    "FunctionDefinition": _function,
    "ModifierDefinition": _modifier,
    "StateVariableDeclaration": _state_variables,
    "UsingForDeclaration": _using_for,
    "Block": _block_node,
    "ExpressionStatement": _expression_statement,
    "IfStatement": _if,
    "ForStatement": _for,
    "WhileStatement": _while,
    "BinaryOperation": _binary,
    "UnaryOperation": _unary,
    "FunctionCall": _call,
    "FunctionCallOptions": _call_options,
    "MemberAccess": _member,
    "IndexAccess": _index,
    "Identifier": _identifier,
    "NumberLiteral": _literal,
    "BooleanLiteral": _literal,
    "StringLiteral": _literal,
    "HexLiteral": _literal,
    "ElementaryTypeNameExpression": _elementary_expression,
    "ElementaryTypeName": _elementary,
}


__all__ = [
    "ParseError",
    "get_contracts",
    "get_functions",
    "get_imports",
    "get_modifiers",
    "get_pragma",
    "get_state_variables",
    "get_using_for",
    "normalize",
    "parse_file",
    "parse_source",
]
