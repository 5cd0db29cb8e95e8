"""
Infix expression parser.

Turns text such as "x^2 - 5x + 6 = 0" into a node tree. This is the only
place in the package that reads text; everything else consumes the
ParseResult contract:

    result = parse_expression("2x + sin(x)")
    result.is_valid    # True
    result.ast         # Operator('+', ...)
    result.errors      # []
    result.variables   # ['x']
    result.functions   # ['sin']

Grammar (lowest to highest precedence):

    equation := expr ['=' expr]
    expr     := term (('+' | '-') term)*
    term     := unary (('*' | '/') unary | unary)*      # juxtaposition multiplies
    unary    := ('-' | '+') unary | power
    power    := primary ['^' unary]                     # right associative
    primary  := NUMBER | NAME '(' args ')' | NAME | '(' expr ')' | WILDCARD

Notes:
    - "-x" becomes -1 * x and "-3" becomes Number(-3)
    - "**" is accepted as "^", "log" is read as the natural logarithm "ln"
    - a single-letter name followed by "(" multiplies: x(y+1) = x*(y+1)
    - wildcards (?x, ?x:const, ?x:var, ?x:free(v), :x) are accepted only
      by parse_pattern, which the rule DSL uses
"""

import re
from typing import List, Optional

from .nodes import (
    CONSTANTS, Node, Number, Variable, Operator, Function, Equation, Wildcard,
    collect_variables, collect_functions,
)

TOKEN_NUMBER = 'NUMBER'
TOKEN_NAME = 'NAME'
TOKEN_WILDCARD = 'WILDCARD'
TOKEN_OPERATOR = 'OPERATOR'
TOKEN_EQUALS = 'EQUALS'
TOKEN_COMMA = 'COMMA'
TOKEN_LPAREN = 'LPAREN'
TOKEN_RPAREN = 'RPAREN'
TOKEN_EOF = 'EOF'

FUNCTION_ALIASES = {"log": "ln"}


class Token:
    def __init__(self, type, value, position):
        self.type = type
        self.value = value
        self.position = position

    def __repr__(self):
        return f"Token({self.type}, '{self.value}', {self.position})"


class _SyntaxError(ValueError):
    """Raised internally; collected into ParseResult.errors."""


class Tokenizer:
    TOKEN_SPECS = [
        (r'\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?', TOKEN_NUMBER),
        (r'\?[A-Za-z_][A-Za-z0-9_]*(?::(?:const|var|expr|free\(\s*[A-Za-z_][A-Za-z0-9_]*\s*\)))?',
         TOKEN_WILDCARD),
        (r':[A-Za-z_][A-Za-z0-9_]*', TOKEN_WILDCARD),
        (r'[A-Za-z_][A-Za-z0-9_]*', TOKEN_NAME),
        (r'\*\*', TOKEN_OPERATOR),
        (r'[\+\-\*/\^]', TOKEN_OPERATOR),
        (r'=', TOKEN_EQUALS),
        (r',', TOKEN_COMMA),
        (r'\(', TOKEN_LPAREN),
        (r'\)', TOKEN_RPAREN),
        (r'\s+', None),  # Skip whitespace
    ]
    _COMPILED_SPECS = [(re.compile(pattern), ttype) for pattern, ttype in TOKEN_SPECS]

    def __init__(self, text, allow_wildcards=False):
        self.text = text
        self.allow_wildcards = allow_wildcards
        self.tokens = self._tokenize()
        self.index = 0

    def _tokenize(self):
        tokens = []
        pos = 0
        while pos < len(self.text):
            for regex, ttype in self._COMPILED_SPECS:
                match = regex.match(self.text, pos)
                if match:
                    if ttype == TOKEN_WILDCARD and not self.allow_wildcards:
                        continue
                    if ttype:
                        value = match.group(0)
                        if value == '**':
                            value = '^'
                        tokens.append(Token(ttype, value, pos))
                    pos = match.end()
                    break
            else:
                raise _SyntaxError(f"Unexpected character '{self.text[pos]}' at position {pos}")
        tokens.append(Token(TOKEN_EOF, "", len(self.text)))
        return tokens

    def next(self):
        token = self.peek()
        if self.index < len(self.tokens):
            self.index += 1
        return token

    def peek(self, offset=0):
        if self.index + offset < len(self.tokens):
            return self.tokens[self.index + offset]
        return self.tokens[-1]


def _negate(node: Node) -> Node:
    if isinstance(node, Number):
        return Number(-node.value)
    return Operator('*', Number(-1), node)


def _wildcard(text: str) -> Wildcard:
    """Build a Wildcard from ?name[:kind] or :name token text."""
    body = text[1:]
    if ':' not in body:
        return Wildcard(body)
    name, kind = body.split(':', 1)
    if kind.startswith('free('):
        return Wildcard(name, 'free', kind[5:-1].strip())
    return Wildcard(name, kind)


class Parser:
    """Recursive-descent parser over a Tokenizer."""

    def __init__(self, tokenizer):
        self.tokenizer = tokenizer
        self.current_token = self.tokenizer.next()

    def _advance(self):
        token = self.current_token
        self.current_token = self.tokenizer.next()
        return token

    def _eat(self, token_type, value=None):
        token = self.current_token
        if token.type != token_type or (value is not None and token.value != value):
            expected = f"'{value}'" if value else token_type
            if token.type == TOKEN_EOF:
                raise _SyntaxError(f"Unexpected end of input, expected {expected}")
            raise _SyntaxError(
                f"Unexpected '{token.value}' at position {token.position}, expected {expected}")
        return self._advance()

    def parse(self) -> Node:
        if self.current_token.type == TOKEN_EOF:
            raise _SyntaxError("Empty expression")
        node = self._expr()
        if self.current_token.type == TOKEN_EQUALS:
            self._advance()
            if self.current_token.type == TOKEN_EOF:
                raise _SyntaxError("Missing right-hand side of equation")
            node = Equation(node, self._expr())
            if self.current_token.type == TOKEN_EQUALS:
                raise _SyntaxError(
                    f"Unexpected '=' at position {self.current_token.position}; "
                    f"only one '=' is allowed")
        if self.current_token.type != TOKEN_EOF:
            token = self.current_token
            raise _SyntaxError(f"Unexpected '{token.value}' at position {token.position}")
        return node

    def _expr(self) -> Node:  # Handles Addition (+) and Subtraction (-)
        node = self._term()
        while self.current_token.type == TOKEN_OPERATOR and self.current_token.value in ('+', '-'):
            op = self._advance().value
            node = Operator(op, node, self._term())
        return node

    def _term(self) -> Node:  # Handles * and / and implicit multiplication
        node = self._unary()
        while True:
            token = self.current_token
            if token.type == TOKEN_OPERATOR and token.value in ('*', '/'):
                self._advance()
                node = Operator(token.value, node, self._unary())
                continue
            if token.type in (TOKEN_NUMBER, TOKEN_NAME, TOKEN_LPAREN, TOKEN_WILDCARD):
                node = Operator('*', node, self._unary())
                continue
            break
        return node

    def _unary(self) -> Node:
        token = self.current_token
        if token.type == TOKEN_OPERATOR and token.value == '-':
            self._advance()
            return _negate(self._unary())
        if token.type == TOKEN_OPERATOR and token.value == '+':
            self._advance()
            return self._unary()
        return self._power()

    def _power(self) -> Node:  # Handles exponentiation (^)
        node = self._primary()
        if self.current_token.type == TOKEN_OPERATOR and self.current_token.value == '^':
            self._advance()
            node = Operator('^', node, self._unary())
        return node

    def _primary(self) -> Node:
        token = self.current_token

        if token.type == TOKEN_NUMBER:
            self._advance()
            return Number(float(token.value))

        if token.type == TOKEN_WILDCARD:
            self._advance()
            return _wildcard(token.value)

        if token.type == TOKEN_NAME:
            self._advance()
            is_call = (self.current_token.type == TOKEN_LPAREN and len(token.value) > 1
                       and token.value not in CONSTANTS)
            if not is_call:
                return Variable(token.value)
            self._advance()
            args = [self._expr()]
            while self.current_token.type == TOKEN_COMMA:
                self._advance()
                args.append(self._expr())
            self._eat(TOKEN_RPAREN, ')')
            name = FUNCTION_ALIASES.get(token.value, token.value)
            return Function(name, args)

        if token.type == TOKEN_LPAREN:
            self._advance()
            node = self._expr()
            self._eat(TOKEN_RPAREN, ')')
            return node

        if token.type == TOKEN_EOF:
            raise _SyntaxError("Unexpected end of input")
        raise _SyntaxError(f"Unexpected '{token.value}' at position {token.position}")


class ParseResult:
    """Outcome of parsing: the tree plus the names it mentions."""

    def __init__(self, is_valid: bool, ast: Optional[Node] = None,
                 errors: Optional[List[str]] = None,
                 variables: Optional[List[str]] = None,
                 functions: Optional[List[str]] = None):
        self.is_valid = is_valid
        self.ast = ast
        self.errors = errors or []
        self.variables = variables or []
        self.functions = functions or []

    def __repr__(self) -> str:
        if self.is_valid:
            return f"ParseResult(valid, {self.ast!r})"
        return f"ParseResult(invalid, {self.errors!r})"


def _parse(text: str, allow_wildcards: bool) -> ParseResult:
    if not isinstance(text, str):
        return ParseResult(False, errors=[f"Expected a string, got {type(text).__name__}"])
    try:
        ast = Parser(Tokenizer(text, allow_wildcards=allow_wildcards)).parse()
    except _SyntaxError as e:
        return ParseResult(False, errors=[str(e)])
    return ParseResult(
        True,
        ast=ast,
        variables=collect_variables(ast),
        functions=collect_functions(ast),
    )


def parse_expression(text: str) -> ParseResult:
    """Parse an expression or equation."""
    return _parse(text, allow_wildcards=False)


def parse_pattern(text: str) -> Optional[Node]:
    """
    Parse a rule pattern or skeleton, allowing wildcards.

    Returns None if the text does not parse.
    """
    result = _parse(text, allow_wildcards=True)
    return result.ast if result.is_valid else None
