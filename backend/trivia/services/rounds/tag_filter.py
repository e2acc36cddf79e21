"""Boolean tag-filter expressions over the question catalog.

Syntax::

    tag            questions carrying the tag
    !tag           questions without it
    a & b          both tags (intersection)
    a | b          either tag (union)
    (expr)         grouping
    *              every question

Precedence from loosest to tightest is ``|``, ``&``, ``!``. Examples:
``lyrics & graduation``, ``(easy | medium) & !artist``, ``!hard``.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set, Union

from .catalog import QuestionSource
from .errors import FilterSyntaxError

logger = logging.getLogger(__name__)

TAG_CHARS = re.compile(r'[a-zA-Z0-9_:-]')

# Bounds keep the recursive-descent parser well inside the interpreter stack.
MAX_EXPRESSION_LENGTH = 500
MAX_NESTING_DEPTH = 32

# token types
TAG = 'TAG'
NOT = 'NOT'
AND = 'AND'
OR = 'OR'
LPAREN = 'LPAREN'
RPAREN = 'RPAREN'
WILDCARD = 'WILDCARD'
EOF = 'EOF'

_SINGLE_CHAR_TOKENS = {
    '!': NOT,
    '&': AND,
    '|': OR,
    '(': LPAREN,
    ')': RPAREN,
    '*': WILDCARD,
}


@dataclass(frozen=True)
class Token:
    type: str
    value: Optional[str] = None
    position: int = 0


@dataclass(frozen=True)
class TagNode:
    tag: str


@dataclass(frozen=True)
class WildcardNode:
    pass


@dataclass(frozen=True)
class NotNode:
    operand: 'Node'


@dataclass(frozen=True)
class AndNode:
    left: 'Node'
    right: 'Node'


@dataclass(frozen=True)
class OrNode:
    left: 'Node'
    right: 'Node'


Node = Union[TagNode, WildcardNode, NotNode, AndNode, OrNode]


def tokenize(expression: str) -> List[Token]:
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise FilterSyntaxError(
            f"Expression longer than {MAX_EXPRESSION_LENGTH} characters", position=MAX_EXPRESSION_LENGTH
        )
    tokens = []
    i = 0
    length = len(expression)
    while i < length:
        char = expression[i]
        if char.isspace():
            i += 1
            continue
        if char in _SINGLE_CHAR_TOKENS:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[char], char, i))
            i += 1
            continue
        if TAG_CHARS.match(char):
            start = i
            while i < length and TAG_CHARS.match(expression[i]):
                i += 1
            tokens.append(Token(TAG, expression[start:i].lower(), start))
            continue
        raise FilterSyntaxError(f"Unexpected character {char!r} at position {i}", position=i)
    tokens.append(Token(EOF, None, length))
    return tokens


class ExpressionParser:
    """Recursive-descent parser; one method per grammar rule."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.current
        if token.type != EOF:
            self.pos += 1
        return token

    def descend(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise FilterSyntaxError(
                f"Expression nested deeper than {MAX_NESTING_DEPTH} levels at position {self.current.position}",
                position=self.current.position,
            )

    def expect(self, token_type: str) -> Token:
        if self.current.type != token_type:
            raise FilterSyntaxError(
                f"Expected {token_type}, got {self.current.type} at position {self.current.position}",
                position=self.current.position,
            )
        return self.advance()

    def parse(self) -> Node:
        node = self.parse_or()
        self.expect(EOF)
        return node

    # or_expr := and_expr ('|' and_expr)*
    def parse_or(self) -> Node:
        left = self.parse_and()
        while self.current.type == OR:
            self.advance()
            left = OrNode(left, self.parse_and())
        return left

    # and_expr := not_expr ('&' not_expr)*
    def parse_and(self) -> Node:
        left = self.parse_not()
        while self.current.type == AND:
            self.advance()
            left = AndNode(left, self.parse_not())
        return left

    # not_expr := '!' not_expr | primary
    def parse_not(self) -> Node:
        if self.current.type == NOT:
            self.descend()
            self.advance()
            node = NotNode(self.parse_not())
            self.depth -= 1
            return node
        return self.parse_primary()

    # primary := '(' expr ')' | TAG | '*'
    def parse_primary(self) -> Node:
        token = self.current
        if token.type == LPAREN:
            self.descend()
            self.advance()
            node = self.parse_or()
            self.expect(RPAREN)
            self.depth -= 1
            return node
        if token.type == TAG:
            self.advance()
            return TagNode(token.value)
        if token.type == WILDCARD:
            self.advance()
            return WildcardNode()
        raise FilterSyntaxError(f"Unexpected token {token.type} at position {token.position}", position=token.position)


def is_match_all(expression) -> bool:
    return expression is None or not str(expression).strip() or str(expression).strip() == '*'


def parse_expression(expression) -> Node:
    if is_match_all(expression):
        return WildcardNode()
    return ExpressionParser(tokenize(str(expression).strip())).parse()


def evaluate(node: Node, source) -> Set[str]:
    """Map an AST onto a set of question ids drawn from ``source``."""
    if isinstance(node, WildcardNode):
        return source.all_ids()
    if isinstance(node, TagNode):
        return source.ids_for_tag(node.tag)
    if isinstance(node, NotNode):
        return source.all_ids() - evaluate(node.operand, source)
    if isinstance(node, AndNode):
        return evaluate(node.left, source) & evaluate(node.right, source)
    if isinstance(node, OrNode):
        return evaluate(node.left, source) | evaluate(node.right, source)
    raise TypeError(f"unknown filter node {node!r}")


@dataclass(frozen=True)
class FilterValidation:
    valid: bool
    error: Optional[str] = None

    def to_dict(self):
        data = {'valid': self.valid}
        if self.error:
            data['error'] = self.error
        return data


class TagFilterEngine:
    """Compiles tag expressions against one question source."""

    def __init__(self, source: QuestionSource):
        self.source = source

    def compile(self, expression) -> Set[str]:
        """Return the ids matching ``expression``.

        A broken expression must never hide the whole catalog, so any
        failure returns every id and is logged once.
        """
        if is_match_all(expression):
            return self.source.all_ids()
        try:
            return evaluate(parse_expression(expression), self.source)
        except (FilterSyntaxError, TypeError, RecursionError) as exc:
            logger.error(f"[tag-filter] expression={expression!r} failed ({exc}); matching all questions")
            return self.source.all_ids()

    def validate(self, expression) -> FilterValidation:
        if is_match_all(expression):
            return FilterValidation(valid=True)
        try:
            parse_expression(expression)
        except FilterSyntaxError as exc:
            return FilterValidation(valid=False, error=str(exc))
        except RecursionError:
            return FilterValidation(valid=False, error='Expression is nested too deeply')
        return FilterValidation(valid=True)

    def statistics(self, expression) -> dict:
        return {'total': len(self.compile(expression)), 'expression': expression}
