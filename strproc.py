#!/usr/bin/env python3
"""
STRPROC - A small line-oriented string processing language
Version 1.0 - Symbol table, tokenizer and parser

Statements look like `<keyword> [name] [expression] ;` and several of them may
share one line:

    > set one 'this is a string.'; print one; reverse one; print one; exit;

SPACE, TAB and NEWLINE are loaded at startup as readonly symbols.
"""

import sys
import os
import re
import logging
import traceback
import argparse
import unittest

try:
    import readline
    import atexit
    HAVE_READLINE = True
except ImportError:
    HAVE_READLINE = False

from typing import List, Dict, Optional, Callable, Iterable, Iterator, Sequence
from enum import Enum

__version__ = "1.0.0"


# ============================================================================
# 1. ERROR HANDLING
# ============================================================================

class StrProcError(Exception):
    """Base class for STRPROC errors"""
    category = "Error"

    def __init__(self, message, column=None, source=None):
        self.message = message
        self.column = column
        self.source = source
        super().__init__(self._format_message())

    def _format_message(self):
        if self.column is not None:
            return f"{self.message} (at column {self.column})"
        return self.message

    def show_with_context(self):
        """Show error with its category and, when known, the offending line"""
        text = f"[{self.category}] {self}"
        if self.column is not None and self.source is not None:
            pointer = ' ' * (self.column - 1) + '^'
            return f"{text}\n\n{self.source}\n{pointer}"
        return text


class TokenizeError(StrProcError):
    """Lexer-specific errors"""
    category = "Tokenizer"


class IllegalCharacterError(TokenizeError):
    """No token can start with the character found"""
    pass


class InvalidTokenKindError(TokenizeError):
    """A token was built with a kind outside TokenKind"""
    pass


class UnterminatedStringError(TokenizeError):
    """A string literal was still open when the input ran out"""
    pass


class ParserError(StrProcError):
    """Parser-specific errors, annotated with the parser state and position"""
    category = "Parser"

    def __init__(self, message, state=None, position=None):
        self.state = state
        self.position = position
        super().__init__(message)

    def _format_message(self):
        details = []
        if self.state is not None:
            details.append(f"state: {self.state}")
        if self.position is not None:
            details.append(f"token: {self.position}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class ExpressionError(StrProcError):
    """Malformed expression; always re-raised as a ParserError"""
    category = "Expression"


class SymbolError(StrProcError):
    """Symbol table errors"""
    category = "Symbol"

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or self.default_message(name))

    @staticmethod
    def default_message(name: str) -> str:
        return f"Symbol '{name}' cannot be used"


class UndefinedSymbolError(SymbolError):
    @staticmethod
    def default_message(name: str) -> str:
        return f"Cannot find symbol '{name}'"


class ReadOnlySymbolError(SymbolError):
    @staticmethod
    def default_message(name: str) -> str:
        return f"Symbol '{name}' is readonly and cannot be modified"


# ============================================================================
# 2. DEBUG OUTPUT
# ============================================================================

class DebugLevel(Enum):
    OFF = 0
    BASIC = 1
    VERBOSE = 2


class DebugOutput:
    """Writes trace messages for one component through the logging module"""

    def __init__(self, component: str, level: DebugLevel = DebugLevel.OFF):
        self.level = level
        self.logger = logging.getLogger(f"strproc.{component}")

    def enabled(self, level: DebugLevel = DebugLevel.BASIC) -> bool:
        return self.level is not DebugLevel.OFF and level.value <= self.level.value

    def __call__(self, message: str, level: DebugLevel = DebugLevel.BASIC):
        if self.enabled(level):
            self.logger.debug("[%s] %s", level.name.capitalize(), message)


# ============================================================================
# 3. TOKEN DEFINITIONS
# ============================================================================

class TokenKind(Enum):
    KEYWORD = "keyword"
    STRING = "string"
    NAME = "name"
    OPERATOR = "operator"
    TERMINATOR = "terminator"


class Keyword(Enum):
    APPEND = "append"
    LIST = "list"
    EXIT = "exit"
    PRINT = "print"
    PRINTLENGTH = "printlength"
    PRINTWORDS = "printwords"
    PRINTWORDCOUNT = "printwordcount"
    SET = "set"
    REVERSE = "reverse"


class Token:
    """Represents a token of the input; immutable once built"""
    __slots__ = ("kind", "text")

    def __init__(self, kind: TokenKind, text: str):
        if not isinstance(kind, TokenKind):
            raise InvalidTokenKindError(f"Unknown token kind '{kind}' provided")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "text", text)

    def __setattr__(self, name, value):
        raise AttributeError(f"Token is immutable, cannot set '{name}'")

    def __delattr__(self, name):
        raise AttributeError(f"Token is immutable, cannot delete '{name}'")

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return self.kind is other.kind and self.text == other.text

    def __hash__(self):
        return hash((self.kind, self.text))

    def __repr__(self):
        return f"Token({self.kind.name}, {self.text!r})"

    def __str__(self):
        return f"{self.kind.name}:{self.text}"


# ============================================================================
# 4. LEXER
# ============================================================================

class PartialString:
    """A string literal that is still open at the end of a line"""
    __slots__ = ("delimiter", "escaping", "accumulated")

    def __init__(self, delimiter: str):
        self.delimiter = delimiter
        self.escaping = False
        self.accumulated = ""

    def __repr__(self):
        return (f"PartialString(delimiter={self.delimiter!r}, escaping={self.escaping}, "
                f"accumulated={self.accumulated!r})")


class Lexer:
    """Tokenizer for STRPROC input, one line per call to process()"""

    ESCAPE_CHARS = {
        'a': '\a',
        'b': '\b',
        'f': '\f',
        'n': '\n',
        'r': '\r',
        't': '\t',
        'v': '\v',
    }

    # Keywords must end on a word boundary, so `settle` is a name, not `set`
    KEYWORD_PATTERN = re.compile(
        r"(append|list|exit|print|printlength|printwords|printwordcount|set|reverse)\b"
    )
    NAME_PATTERN = re.compile(r"[a-zA-Z][a-zA-Z0-9_]*")
    STRING_DELIMITERS = "\"'"

    def __init__(self, debug_level: DebugLevel = DebugLevel.OFF):
        self.debug = DebugOutput("lexer", debug_level)
        self.partial: Optional[PartialString] = None
        self.tokens: List[Token] = []
        self.source = ""
        self.current = 0

    @property
    def pending(self) -> bool:
        return self.partial is not None

    def reset(self):
        """Drop any open string literal and the tokens buffered with it"""
        self.partial = None
        self.tokens = []

    def process(self, line: str) -> List[Token]:
        """Tokenize one line.

        While a string literal is open the tokens of the batch are held back
        and an empty list is returned; the line that closes the literal gets
        the whole batch.
        """
        self.debug("Beginning tokenization of input")
        self.source = line
        self.current = 0
        if self.partial is None:
            self.tokens = []

        try:
            while not self.is_at_end():
                self.scan_token()
        except TokenizeError:
            self.reset()
            raise

        if self.partial is not None:
            self.debug(f"Line ended inside a string literal, holding {len(self.tokens)} token(s)")
            return []

        tokens, self.tokens = self.tokens, []
        return tokens

    def scan_token(self):
        if self.partial is not None:
            self.string()
            return

        self.skip_whitespace()
        if self.is_at_end():
            return

        match = self.KEYWORD_PATTERN.match(self.source, self.current)
        if match:
            self.add_token(TokenKind.KEYWORD, self.consume_match(match))
            return

        char = self.peek()
        if char in self.STRING_DELIMITERS:
            self.advance()
            self.partial = PartialString(char)
            self.debug(f"Opening string literal with delimiter {char}")
            return
        if char == ';':
            self.add_token(TokenKind.TERMINATOR, self.advance())
            return
        if char == '+':
            self.add_token(TokenKind.OPERATOR, self.advance())
            return

        match = self.NAME_PATTERN.match(self.source, self.current)
        if match:
            self.add_token(TokenKind.NAME, self.consume_match(match))
            return

        self.error(f"Illegal character '{char}', unable to form a token with this character")

    def string(self):
        partial = self.partial
        while not self.is_at_end():
            char = self.advance()
            self.debug(f"String char {char!r}, escaping: {partial.escaping}", DebugLevel.VERBOSE)
            if partial.escaping:
                partial.accumulated += self.ESCAPE_CHARS.get(char, char)
                partial.escaping = False
            elif char == '\\':
                partial.escaping = True
            elif char == partial.delimiter:
                self.partial = None
                self.add_token(TokenKind.STRING, partial.accumulated)
                return
            else:
                partial.accumulated += char

    def skip_whitespace(self):
        while not self.is_at_end() and self.peek().isspace():
            self.current += 1

    def consume_match(self, match) -> str:
        text = match.group(0)
        self.debug(f"Consuming n={len(text)} chars ({text})", DebugLevel.VERBOSE)
        self.current = match.end()
        return text

    def add_token(self, kind: TokenKind, text: str):
        self.debug(f"Creating token type {kind.value} -> {text!r}")
        self.tokens.append(Token(kind, text))

    def advance(self) -> str:
        char = self.source[self.current]
        self.current += 1
        return char

    def peek(self) -> str:
        if self.is_at_end():
            return '\0'
        return self.source[self.current]

    def is_at_end(self) -> bool:
        return self.current >= len(self.source)

    def error(self, message: str):
        raise IllegalCharacterError(message, self.current + 1, self.source)


# ============================================================================
# 5. SYMBOL TABLE
# ============================================================================

class SymbolEntry:
    """A named string value, optionally readonly"""

    def __init__(self, name: str, value: str, readonly: bool = False):
        self.name = name
        self._value = value
        self._readonly = readonly

    @property
    def readonly(self) -> bool:
        return self._readonly

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, value: str):
        if self._readonly:
            raise ReadOnlySymbolError(
                self.name,
                f"Cannot change value of symbol '{self.name}' as it's readonly",
            )
        self._value = value

    def __repr__(self):
        flag = ", readonly" if self._readonly else ""
        return f"SymbolEntry({self.name!r}, {self._value!r}{flag})"

    def __str__(self):
        return f"{self.name} -> {dump_string(self._value)} {'[readonly]' if self._readonly else ''}"


class SymbolTable:
    """Named values in insertion order, at most one entry per name"""

    CONSTANTS = (
        ("SPACE", " "),
        ("TAB", "\t"),
        ("NEWLINE", "\n"),
    )

    def __init__(self):
        self.entries: Dict[str, SymbolEntry] = {}

    @classmethod
    def with_constants(cls) -> 'SymbolTable':
        table = cls()
        for name, value in cls.CONSTANTS:
            table.define_readonly(name, value)
        return table

    def exists(self, name: str) -> bool:
        return name in self.entries

    def entry(self, name: str) -> SymbolEntry:
        try:
            return self.entries[name]
        except KeyError:
            raise UndefinedSymbolError(name) from None

    def get(self, name: str) -> str:
        return self.entry(name).value

    def set(self, name: str, value: str):
        entry = self.entries.get(name)
        if entry is None:
            self.entries[name] = SymbolEntry(name, value)
        else:
            entry.value = value

    def define_readonly(self, name: str, value: str):
        # Re-assigning an existing key keeps its place in the listing
        self.entries[name] = SymbolEntry(name, value, readonly=True)

    def list(self) -> List[SymbolEntry]:
        return list(self.entries.values())

    def __contains__(self, name) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[SymbolEntry]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self.entries)


_DUMP_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
    '\f': '\\f',
    '\v': '\\v',
    '\b': '\\b',
    '\a': '\\a',
    '\x1b': '\\e',
}


def dump_string(value: str) -> str:
    """Quote a value with control and quote characters escaped"""
    parts = ['"']
    for char in value:
        if char in _DUMP_ESCAPES:
            parts.append(_DUMP_ESCAPES[char])
        elif char.isprintable():
            parts.append(char)
        else:
            code = ord(char)
            if code < 0x100:
                parts.append(f"\\x{code:02X}")
            elif code < 0x10000:
                parts.append(f"\\u{code:04X}")
            else:
                parts.append(f"\\U{code:08X}")
    parts.append('"')
    return ''.join(parts)


# ============================================================================
# 6. COMMANDS
# ============================================================================

WORD_PATTERN = re.compile(r"[\w.]+")
REVERSE_PATTERN = re.compile(r"([\w.]+)(\s*)")


class Commands:
    """The effects of each statement on the symbol table and the output.

    Every command evaluates its whole expression before touching the table,
    so a statement that fails never leaves a half-written value behind.
    """

    def __init__(self, symbols: SymbolTable, output: Callable[[str], None] = print,
                 on_exit: Optional[Callable[[], None]] = None):
        self.symbols = symbols
        self.output = output
        self.on_exit = on_exit

    def evaluate(self, expression: Sequence[Token]) -> str:
        parts = []
        for token in expression:
            if token.kind is TokenKind.STRING:
                parts.append(token.text)
            elif token.kind is TokenKind.NAME:
                if not self.symbols.exists(token.text):
                    raise UndefinedSymbolError(
                        token.text,
                        f"Cannot retrieve value of {token.text} referenced inside the expression "
                        f"as it doesn't exist",
                    )
                parts.append(self.symbols.get(token.text))
            else:
                raise ValueError(f"Unexpected {token!r} inside expression")
        return ''.join(parts)

    def do_append(self, name: str, expression: Sequence[Token]):
        if not self.symbols.exists(name):
            raise UndefinedSymbolError(name, f"Cannot append to {name} as it doesn't exist")
        value = self.symbols.get(name) + self.evaluate(expression)
        self.symbols.set(name, value)

    def do_set(self, name: str, expression: Sequence[Token]):
        self.symbols.set(name, self.evaluate(expression))

    def do_reverse(self, name: str):
        """Reverse the word order of a symbol: "The cat sat" -> "sat cat The ".

        Each word keeps the whitespace that followed it; the last word has
        none, so it is followed by a single space.
        """
        if not self.symbols.exists(name):
            raise UndefinedSymbolError(name, f"Cannot reverse contents of {name} as it doesn't exist")
        pairs = REVERSE_PATTERN.findall(self.symbols.get(name))
        self.symbols.set(name, ''.join(word + (spacing or ' ') for word, spacing in reversed(pairs)))

    def do_print(self, expression: Sequence[Token]):
        self.output(self.evaluate(expression))

    def do_printlength(self, expression: Sequence[Token]):
        self.output(str(len(self.evaluate(expression))))

    def do_printwords(self, expression: Sequence[Token]):
        words = WORD_PATTERN.findall(self.evaluate(expression))
        self.output("Expression provided following words:")
        if not words:
            self.output("")
        for word in words:
            self.output(word)

    def do_printwordcount(self, expression: Sequence[Token]):
        words = WORD_PATTERN.findall(self.evaluate(expression))
        self.output(f"Expression provided n={len(words)} words:")

    def do_list(self):
        self.output("Symbol table (special chars escaped):")
        for entry in self.symbols.list():
            self.output(str(entry))

    def do_exit(self):
        if self.on_exit is not None:
            self.on_exit()


# ============================================================================
# 7. PARSER
# ============================================================================

class ParserMode(Enum):
    READY = "ready"
    ROOT = "root"
    COMMAND = "command"


class ParserState:
    """Parser mode, plus the active keyword while in COMMAND mode"""
    __slots__ = ("mode", "keyword")

    def __init__(self, mode: ParserMode, keyword: Optional[Keyword] = None):
        if (mode is ParserMode.COMMAND) != (keyword is not None):
            raise ValueError(f"A keyword is required in command mode only, got {mode} with {keyword}")
        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "keyword", keyword)

    def __setattr__(self, name, value):
        raise AttributeError(f"ParserState is immutable, cannot set '{name}'")

    @classmethod
    def ready(cls) -> 'ParserState':
        return cls(ParserMode.READY)

    @classmethod
    def root(cls) -> 'ParserState':
        return cls(ParserMode.ROOT)

    @classmethod
    def command(cls, keyword: Keyword) -> 'ParserState':
        return cls(ParserMode.COMMAND, keyword)

    def __eq__(self, other):
        if not isinstance(other, ParserState):
            return NotImplemented
        return self.mode is other.mode and self.keyword is other.keyword

    def __hash__(self):
        return hash((self.mode, self.keyword))

    def __repr__(self):
        return f"ParserState({self})"

    def __str__(self):
        if self.keyword is not None:
            return f"{self.mode.value}({self.keyword.value})"
        return self.mode.value


class Parser:
    """State machine over a batch of tokens, one statement at a time"""

    EXPRESSION_TERMS = (TokenKind.NAME, TokenKind.STRING)

    def __init__(self, commands: Commands, debug_level: DebugLevel = DebugLevel.OFF):
        self.commands = commands
        self.debug = DebugOutput("parser", debug_level)
        self.state = ParserState.ready()
        self.last_state = self.state
        self.tokens: List[Token] = []
        self.current = 0
        self.handlers: Dict[Keyword, Callable[[], None]] = {
            Keyword.APPEND: self.append_statement,
            Keyword.SET: self.set_statement,
            Keyword.REVERSE: self.reverse_statement,
            Keyword.PRINT: self.print_statement,
            Keyword.PRINTLENGTH: self.printlength_statement,
            Keyword.PRINTWORDS: self.printwords_statement,
            Keyword.PRINTWORDCOUNT: self.printwordcount_statement,
            Keyword.LIST: self.list_statement,
            Keyword.EXIT: self.exit_statement,
        }

    def parse(self, tokens: Iterable[Token]):
        """Run every statement in the batch; the state is READY afterwards, even on error"""
        if self.state.mode is not ParserMode.READY:
            self.error(f"Attempting to start parser while already running (state found {self.state})")

        self.debug("Starting parse of tokens received")
        self.tokens = list(tokens)
        self.current = 0
        self.state = ParserState.root()
        try:
            while self.statement():
                pass
        finally:
            self.last_state = self.state
            self.state = ParserState.ready()
        self.debug("Parsing complete")

    def statement(self) -> bool:
        if self.is_at_end():
            return False

        token = self.peek()
        if token.kind is not TokenKind.KEYWORD:
            self.error(f"Unexpected {token.kind.value} token ({token.text}) found, expected keyword")
        try:
            keyword = Keyword(token.text)
        except ValueError as e:
            self.error(f"Unknown keyword '{token.text}'", e)
        self.advance()

        self.state = ParserState.command(keyword)
        self.handlers[keyword]()
        self.debug(f"Command for {keyword.value} completed, resetting parser state")
        self.state = ParserState.root()
        return True

    # Statements

    def append_statement(self):
        name = self.expect(TokenKind.NAME)
        expression = self.expression_statement()
        self.commands.do_append(name.text, expression)

    def set_statement(self):
        name = self.expect(TokenKind.NAME)
        expression = self.expression_statement()
        self.commands.do_set(name.text, expression)

    def reverse_statement(self):
        name = self.expect(TokenKind.NAME)
        self.expect(TokenKind.TERMINATOR)
        self.commands.do_reverse(name.text)

    def print_statement(self):
        self.commands.do_print(self.expression_statement())

    def printlength_statement(self):
        self.commands.do_printlength(self.expression_statement())

    def printwords_statement(self):
        self.commands.do_printwords(self.expression_statement())

    def printwordcount_statement(self):
        self.commands.do_printwordcount(self.expression_statement())

    def list_statement(self):
        self.expect(TokenKind.TERMINATOR)
        self.commands.do_list()

    def exit_statement(self):
        self.expect(TokenKind.TERMINATOR)
        self.commands.do_exit()

    # Expressions

    def expression_statement(self) -> List[Token]:
        expression = self.expression()
        self.expect(TokenKind.TERMINATOR)
        return expression

    def expression(self) -> List[Token]:
        """Collect `term (+ term)*` up to, but not including, the terminator"""
        terms: List[Token] = []
        try:
            while True:
                if self.is_at_end():
                    raise ExpressionError("Expression definition incomplete, more terms expected")

                term = self.expect(*self.EXPRESSION_TERMS)
                terms.append(term)
                self.debug(f"Expression term found as {term} - appending to expression")

                following = self.peek()
                if following is None:
                    raise ExpressionError(
                        f"Expected terminator (;) or operator (+) following {term.text} in expression"
                    )
                if following.kind is TokenKind.TERMINATOR:
                    break
                if following.kind is not TokenKind.OPERATOR:
                    raise ExpressionError(
                        f"Unexpected {following.kind.value} token ({following.text}) inside expression, "
                        f"expected terminator (;) or operator (+)"
                    )
                self.advance()
        except ExpressionError as e:
            keyword = self.state.keyword
            if keyword is None:
                self.error(f"Failed to parse expression: {e.message}", e)
            self.error(f"Expression error for {keyword.value} command: {e.message}", e)
        return terms

    # Token helpers

    def expect(self, *kinds: TokenKind, offset: int = 0, consume: bool = True) -> Token:
        """Return the token at `offset` if it is one of `kinds`, otherwise fail"""
        self.dump_tokens()
        token = self.peek(offset)
        if token is not None and token.kind in kinds:
            if consume:
                self.advance(1 + offset)
            return token

        found = "end of input" if token is None else f"{token.kind.value} token ({token.text})"
        expected = " or ".join(kind.value for kind in kinds)
        self.error(f"Unexpected {found}, expected {expected} token")

    def peek(self, offset: int = 0) -> Optional[Token]:
        index = self.current + offset
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def advance(self, amount: int = 1) -> Optional[Token]:
        self.current += amount
        return self.peek()

    def is_at_end(self) -> bool:
        return self.current >= len(self.tokens)

    def dump_tokens(self):
        if not self.debug.enabled(DebugLevel.VERBOSE):
            return
        self.debug("Printing token stack:", DebugLevel.VERBOSE)
        for index, token in enumerate(self.tokens):
            marker = " <- current" if index == self.current else ""
            self.debug(f"{index}: {token!r}{marker}", DebugLevel.VERBOSE)

    def error(self, message: str, cause: Optional[BaseException] = None):
        self.dump_tokens()
        raise ParserError(message, self.state, self.current) from cause


# ============================================================================
# 8. INTERPRETER
# ============================================================================

class Interpreter:
    """One session: a symbol table plus the lexer and parser feeding it"""

    def __init__(self, output: Callable[[str], None] = print,
                 debug_level: DebugLevel = DebugLevel.OFF):
        self.output = output
        self.debug = DebugOutput("interpreter", debug_level)
        self.symbols = SymbolTable.with_constants()
        self.commands = Commands(self.symbols, output, on_exit=self.close)
        self.lexer = Lexer(debug_level)
        self.parser = Parser(self.commands, debug_level)
        self.running = True

    @property
    def pending(self) -> bool:
        return self.lexer.pending

    def close(self):
        self.debug("Exit requested, closing session")
        self.running = False

    def execute(self, line: str):
        tokens = self.lexer.process(line)
        for token in tokens:
            self.debug(f"Token: {token!r}", DebugLevel.VERBOSE)
        self.parser.parse(tokens)

    def finish(self):
        """Fail if the input ran out inside a string literal"""
        partial = self.lexer.partial
        if partial is None:
            return
        self.lexer.reset()
        raise UnterminatedStringError(
            f"String literal opened with {partial.delimiter} was never closed "
            f"(read so far: {dump_string(partial.accumulated)})"
        )


def run_lines(interpreter: Interpreter, lines: Iterable[str]):
    """Feed lines to the interpreter until they run out or `exit;` runs"""
    for line in lines:
        if not interpreter.running:
            break
        interpreter.execute(line.rstrip('\r\n'))
    interpreter.finish()


# ============================================================================
# 9. REPL
# ============================================================================

HISTORY_FILE = os.path.join(os.path.expanduser("~"), ".strproc_history")


class StrProcREPL:
    """Read-Eval-Print Loop for STRPROC"""

    def __init__(self, debug_level: DebugLevel = DebugLevel.OFF):
        self.debug_level = debug_level
        self.interpreter = Interpreter(debug_level=debug_level)
        self.history: List[str] = []

        if HAVE_READLINE:
            self._setup_history()

    def _setup_history(self):
        try:
            readline.read_history_file(HISTORY_FILE)
        except OSError:
            pass
        readline.set_history_length(1000)
        atexit.register(readline.write_history_file, HISTORY_FILE)

    def run(self):
        print(f"STRPROC {__version__} - string processing language")
        print("End statements with ';', type 'exit;' to quit or '.help' for help.")

        while self.interpreter.running:
            try:
                prompt = ".... > " if self.interpreter.pending else "> "
                line = input(prompt)

                if not self.interpreter.pending and line.strip().startswith('.'):
                    self.handle_command(line.strip())
                    continue

                self.history.append(line)
                self.execute(line)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print("\n(Interrupted)")
                self.interpreter.lexer.reset()
                continue

        print("Goodbye!")

    def handle_command(self, line: str) -> bool:
        cmd = line[1:].strip()

        if cmd == "help":
            self.show_help()
            return True
        elif cmd == "history":
            self.show_history()
            return True
        elif cmd == "reset":
            self.interpreter = Interpreter(debug_level=self.debug_level)
            print("Interpreter reset.")
            return True
        elif cmd.startswith("load "):
            filename = cmd[5:].strip().strip('"\'')
            try:
                with open(filename, 'r', encoding='utf-8') as f:
                    lines = f.read().splitlines()
            except (OSError, UnicodeDecodeError) as e:
                print(f"Error loading {filename}: {e}")
                return True
            print(f"Loading {filename}...")
            try:
                run_lines(self.interpreter, lines)
            except StrProcError as e:
                print(e.show_with_context())
            return True

        print(f"Unknown command: {cmd}. Type '.help' for available commands.")
        return False

    def execute(self, line: str) -> bool:
        try:
            self.interpreter.execute(line)
            return True
        except StrProcError as e:
            print(e.show_with_context())
        except Exception as e:
            parser = self.interpreter.parser
            print("While running this command, the interpreter encountered an internal error!")
            print(f"Error message: {e}")
            print(f"Parser state: {parser.last_state}, token position: {parser.current}")
            traceback.print_exc()
        return False

    def show_help(self):
        print("Statements:")
        print("  set <name> <expr>;        - Store the expression in a symbol")
        print("  append <name> <expr>;     - Add the expression to the end of a symbol")
        print("  reverse <name>;           - Reverse the word order of a symbol")
        print("  print <expr>;             - Print the expression")
        print("  printlength <expr>;       - Print the length of the expression")
        print("  printwords <expr>;        - Print each word of the expression")
        print("  printwordcount <expr>;    - Print the number of words in the expression")
        print("  list;                     - List every symbol")
        print("  exit;                     - Leave the interpreter")
        print()
        print("Expressions join names and 'quoted' or \"quoted\" strings with +")
        print("  set greeting \"Hello\" + SPACE + name;")
        print()
        print("REPL commands:")
        print("  .help          - Show this help")
        print("  .history       - Show command history")
        print("  .load <file>   - Load and run a file")
        print("  .reset         - Reset interpreter state")

    def show_history(self):
        if not self.history:
            print("No history yet.")
        else:
            for i, cmd in enumerate(self.history[-20:], 1):
                print(f"{i:3}: {cmd}")


# ============================================================================
# 10. FILE EXECUTION
# ============================================================================

def run_source(lines: Iterable[str], debug_level: DebugLevel = DebugLevel.OFF) -> int:
    """Run lines in a fresh session, returning the exit status"""
    interpreter = Interpreter(debug_level=debug_level)
    try:
        run_lines(interpreter, lines)
    except StrProcError as e:
        print(e.show_with_context())
        return 1
    except Exception as e:
        print(f"Internal error: {e}")
        traceback.print_exc()
        return 1
    return 0


def run_file(filename: str, debug_level: DebugLevel = DebugLevel.OFF):
    try:
        with open(filename, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        print(f"File not found: {filename}")
        sys.exit(1)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error reading {filename}: {e}")
        sys.exit(1)

    status = run_source(lines, debug_level)
    if status:
        sys.exit(status)


# ============================================================================
# 11. COMMAND LINE INTERFACE
# ============================================================================

def configure_logging(debug_level: DebugLevel):
    if debug_level is DebugLevel.OFF:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="[DEBUG] %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="STRPROC - a small string processing language",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  strproc                                  # Start REPL
  strproc words.sp                         # Run a file
  strproc -e "set a 'hi'; print a;"        # Execute code directly
  strproc --debug verbose                  # Trace the tokenizer and parser
        """
    )

    parser.add_argument(
        "file",
        nargs="?",
        help="script to run"
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"STRPROC {__version__}"
    )

    parser.add_argument(
        "-e", "--execute",
        help="Execute code from command line"
    )

    parser.add_argument(
        "-d", "--debug",
        choices=[level.name.lower() for level in DebugLevel],
        default="off",
        help="Trace level written to stderr"
    )

    parser.add_argument(
        "-t", "--test",
        action="store_true",
        help="Run test suite"
    )

    args = parser.parse_args(argv)

    debug_level = DebugLevel[args.debug.upper()]
    configure_logging(debug_level)

    if args.test:
        run_tests()
        return

    if args.execute:
        status = run_source(args.execute.splitlines(), debug_level)
        if status:
            sys.exit(status)
    elif args.file:
        run_file(args.file, debug_level)
    else:
        repl = StrProcREPL(debug_level)
        repl.run()


# ============================================================================
# 12. TEST SUITE
# ============================================================================

class TestStrProc(unittest.TestCase):
    def run_program(self, *lines):
        output: List[str] = []
        interpreter = Interpreter(output=output.append)
        run_lines(interpreter, lines)
        return interpreter, output

    def test_set_and_append(self):
        interpreter, output = self.run_program('set x "ab"; append x "cd"; print x;')
        self.assertEqual(output, ["abcd"])
        self.assertEqual(interpreter.symbols.get("x"), "abcd")

    def test_reverse_keeps_trailing_spacing(self):
        _, output = self.run_program('set x "The cat sat"; reverse x; print x;')
        self.assertEqual(output, ["sat cat The "])

    def test_readonly_constants(self):
        interpreter, _ = self.run_program()
        with self.assertRaises(ReadOnlySymbolError):
            interpreter.execute('set SPACE "y";')
        self.assertEqual(interpreter.symbols.get("SPACE"), " ")

    def test_string_continues_on_next_line(self):
        interpreter, output = self.run_program('set x "unterm', 'inated"; print x;')
        self.assertEqual(output, ["unterminated"])

    def test_word_count_joins_dots(self):
        _, output = self.run_program('printwordcount "one two.three";')
        self.assertEqual(output, ["Expression provided n=2 words:"])

    def test_exit_stops_session(self):
        interpreter, output = self.run_program('exit;', 'print "never";')
        self.assertFalse(interpreter.running)
        self.assertEqual(output, [])


def run_tests():
    print("Running STRPROC test suite...")
    suite = unittest.TestLoader().loadTestsFromTestCase(TestStrProc)
    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    if result.wasSuccessful():
        print("All tests passed!")
    else:
        print("Some tests failed.")
        sys.exit(1)


# ============================================================================
# 13. MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    main()
