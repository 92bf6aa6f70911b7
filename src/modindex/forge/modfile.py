"""Minimal go.mod reader.

Only the `module` directive is interpreted. The rest of the file is parsed
just far enough to reject files the go command itself would reject: bad
syntax, unknown directives, directives with the wrong number of arguments.
"""

import re
from dataclasses import dataclass
from typing import Iterator, Optional


class ModFileError(ValueError):
    def __init__(self, message: str, lineno: Optional[int] = None):
        self.lineno = lineno
        if lineno is not None:
            message = f"go.mod:{lineno}: {message}"
        super().__init__(message)


@dataclass
class _Token:
    kind: str  # "word", "string", "(", ")", "newline"
    value: str
    lineno: int


@dataclass
class _Statement:
    verb: str
    args: list[str]
    lineno: int


_PUNCTUATION = "[],"

GO_VERSION_RE = re.compile(r"^([1-9][0-9]*)\.(0|[1-9][0-9]*)(\.(0|[1-9][0-9]*))?([a-z]+[0-9]+)?$")


def _is_word_char(char: str) -> bool:
    return not char.isspace() and char not in '()[]{},"`'


def _tokenize(content: str) -> Iterator[_Token]:
    pos = 0
    lineno = 1
    end = len(content)

    while pos < end:
        char = content[pos]

        if char == "\n":
            yield _Token("newline", "\n", lineno)
            lineno += 1
            pos += 1
        elif char.isspace():
            pos += 1
        elif content.startswith("//", pos):
            newline = content.find("\n", pos)
            pos = end if newline < 0 else newline
        elif char in "()":
            yield _Token(char, char, lineno)
            pos += 1
        elif char in _PUNCTUATION:
            yield _Token("word", char, lineno)
            pos += 1
        elif char == '"':
            start = pos
            pos += 1
            while True:
                if pos >= end:
                    raise ModFileError("unterminated quoted string", lineno)
                if content[pos] == "\n":
                    raise ModFileError("unexpected newline in string", lineno)
                if content[pos] == "\\":
                    pos += 2
                    continue
                if content[pos] == '"':
                    pos += 1
                    break
                pos += 1
            yield _Token("string", content[start:pos], lineno)
        elif char == "`":
            closing = content.find("`", pos + 1)
            if closing < 0:
                raise ModFileError("unterminated raw string", lineno)
            raw = content[pos : closing + 1]
            yield _Token("string", raw, lineno)
            lineno += raw.count("\n")
            pos = closing + 1
        elif _is_word_char(char):
            start = pos
            while pos < end and _is_word_char(content[pos]) and not content.startswith("//", pos):
                pos += 1
            yield _Token("word", content[start:pos], lineno)
        else:
            raise ModFileError(f"unexpected input character {char!r}", lineno)

    yield _Token("newline", "\n", lineno)


def _split_lines(tokens: Iterator[_Token]) -> Iterator[list[_Token]]:
    line: list[_Token] = []
    for token in tokens:
        if token.kind == "newline":
            if line:
                yield line
            line = []
        else:
            line.append(token)


def _parse_statements(content: str) -> list[_Statement]:
    statements: list[_Statement] = []
    block_verb: Optional[_Token] = None

    for line in _split_lines(_tokenize(content)):
        first = line[0]
        kinds = [token.kind for token in line]

        if block_verb is not None:
            if kinds == [")"]:
                block_verb = None
                continue
            if "(" in kinds or ")" in kinds:
                raise ModFileError("unexpected parenthesis inside block", first.lineno)
            statements.append(
                _Statement(block_verb.value, [token.value for token in line], first.lineno)
            )
            continue

        if first.kind != "word":
            raise ModFileError(f"unexpected {first.value!r}, expected a directive", first.lineno)

        if "(" not in kinds and ")" not in kinds:
            statements.append(_Statement(first.value, [t.value for t in line[1:]], first.lineno))
            continue

        if kinds == ["word", "("]:
            block_verb = first
            continue
        if kinds == ["word", "(", ")"]:
            continue

        raise ModFileError(f"malformed block for directive {first.value!r}", first.lineno)

    if block_verb is not None:
        raise ModFileError(f"unterminated {block_verb.value} block", block_verb.lineno)

    return statements


_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
}


def _unquote(value: str, lineno: int) -> str:
    if value.startswith("`"):
        return value[1:-1]
    if not value.startswith('"'):
        return value

    body = value[1:-1]
    result = []
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char != "\\":
            result.append(char)
            pos += 1
            continue

        escape = body[pos + 1 : pos + 2]
        if escape in _ESCAPES:
            result.append(_ESCAPES[escape])
            pos += 2
        elif escape in ("x", "u", "U"):
            width = {"x": 2, "u": 4, "U": 8}[escape]
            digits = body[pos + 2 : pos + 2 + width]
            if len(digits) != width or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise ModFileError(f"invalid escape in {value}", lineno)
            result.append(chr(int(digits, 16)))
            pos += 2 + width
        else:
            raise ModFileError(f"invalid escape in {value}", lineno)
    return "".join(result)


def _expect_args(statement: _Statement, count: int, usage: str) -> None:
    if len(statement.args) != count:
        raise ModFileError(f"usage: {usage}", statement.lineno)


def _check_replace(statement: _Statement) -> None:
    args = statement.args
    if "=>" not in args:
        raise ModFileError("usage: replace module/path [v1.2.3] => other/module v1.4", statement.lineno)
    arrow = args.index("=>")
    old, new = args[:arrow], args[arrow + 1 :]
    if len(old) not in (1, 2) or len(new) not in (1, 2):
        raise ModFileError("usage: replace module/path [v1.2.3] => other/module v1.4", statement.lineno)


def _check_retract(statement: _Statement) -> None:
    args = statement.args
    if len(args) == 1 and args[0] not in _PUNCTUATION:
        return
    if len(args) == 5 and args[0] == "[" and args[2] == "," and args[4] == "]":
        return
    raise ModFileError("usage: retract v1.2.3 or retract [v1.0.0, v1.9.9]", statement.lineno)


def parse_module_path(content: str) -> Optional[str]:
    """Return the path declared by the `module` directive of a go.mod file.

    Returns None when the file has no `module` directive.

    Raises:
        ModFileError: The file is not a well-formed go.mod file.
    """
    module_path: Optional[str] = None

    for statement in _parse_statements(content):
        match statement.verb:
            case "module":
                if module_path is not None:
                    raise ModFileError("repeated module statement", statement.lineno)
                _expect_args(statement, 1, "module module/path")
                module_path = _unquote(statement.args[0], statement.lineno)
            case "go":
                _expect_args(statement, 1, "go 1.23")
                if not GO_VERSION_RE.match(statement.args[0]):
                    raise ModFileError(
                        f"invalid go version {statement.args[0]!r}: must match format 1.23.0",
                        statement.lineno,
                    )
            case "toolchain":
                _expect_args(statement, 1, "toolchain go1.23.0")
            case "godebug":
                _expect_args(statement, 1, "godebug key=value")
                if "=" not in statement.args[0]:
                    raise ModFileError("usage: godebug key=value", statement.lineno)
            case "require" | "exclude":
                _expect_args(statement, 2, f"{statement.verb} module/path v1.2.3")
            case "replace":
                _check_replace(statement)
            case "retract":
                _check_retract(statement)
            case "tool" | "ignore":
                _expect_args(statement, 1, f"{statement.verb} path")
            case _:
                raise ModFileError(f"unknown directive: {statement.verb}", statement.lineno)

    return module_path


# Module path rules


_WINDOWS_RESERVED = {"CON", "PRN", "AUX", "NUL"} | {
    f"{name}{n}" for name in ("COM", "LPT") for n in range(1, 10)
}


def _is_first_element_char(char: str) -> bool:
    return char in "-." or "0" <= char <= "9" or "a" <= char <= "z"


def _is_element_char(char: str) -> bool:
    return char in "-._~" or "0" <= char <= "9" or "a" <= char <= "z" or "A" <= char <= "Z"


def _check_element(element: str) -> None:
    if element == "":
        raise ValueError("empty path element")
    if element.count(".") == len(element):
        raise ValueError(f"invalid path element {element!r}")
    if element.startswith("."):
        raise ValueError("leading dot in path element")
    if element.endswith("."):
        raise ValueError("trailing dot in path element")
    for char in element:
        if not _is_element_char(char):
            raise ValueError(f"invalid char {char!r}")

    short = element.split(".", 1)[0]
    if short.upper() in _WINDOWS_RESERVED:
        raise ValueError(f"{short!r} disallowed as path element component on Windows")

    tilde = short.rfind("~")
    if 0 <= tilde < len(short) - 1 and short[tilde + 1 :].isdigit():
        raise ValueError("trailing tilde and digits in path element")


def _has_valid_major_suffix(path: str) -> bool:
    if path.startswith("gopkg.in/"):
        end = len(path)
        if path.endswith("-unstable"):
            end -= len("-unstable")
        i = end
        while i > 0 and path[i - 1].isdigit():
            i -= 1
        if i <= 1 or path[i - 1] != "v" or path[i - 2] != ".":
            return False
        major = path[i - 2 : end]
        return len(major) > 2 and (major[2] != "0" or major == ".v0")

    i = len(path)
    has_dot = False
    while i > 0 and (path[i - 1].isdigit() or path[i - 1] == "."):
        if path[i - 1] == ".":
            has_dot = True
        i -= 1
    if i <= 1 or i == len(path) or path[i - 1] != "v" or path[i - 2] != "/":
        # No /vN suffix at all
        return True

    major = path[i - 2 :]
    return not (has_dot or len(major) <= 2 or major[2] == "0" or major == "/v1")


def check_module_path(path: str) -> None:
    """Validate a module path the way the go command does.

    Raises:
        ValueError: The path is not a valid module path.
    """
    try:
        _check_module_path(path)
    except ValueError as e:
        raise ValueError(f"malformed module path {path!r}: {e}") from e


def _check_module_path(path: str) -> None:
    if path == "":
        raise ValueError("empty string")
    if path.startswith("/"):
        raise ValueError("leading slash")
    if path.endswith("/"):
        raise ValueError("trailing slash")
    if "//" in path:
        raise ValueError("double slash")

    for element in path.split("/"):
        _check_element(element)

    first = path.split("/", 1)[0]
    if "." not in first:
        raise ValueError("missing dot in first path element")
    if first.startswith("-"):
        raise ValueError("leading dash in first path element")
    for char in first:
        if not _is_first_element_char(char):
            raise ValueError(f"invalid char {char!r} in first path element")

    if not _has_valid_major_suffix(path):
        raise ValueError("invalid version")
