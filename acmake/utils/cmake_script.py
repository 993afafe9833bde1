"""Evaluate the declarative subset of CMake used by package config files.

Package config and exported-targets files mostly set variables, declare
imported targets and include each other. This module parses such files and
applies them to a ConfigurationScope, so a config file can be "included" and
the targets it defines looked up afterwards. Anything outside that subset is
skipped.
"""
import glob
import os
import re

from packaging.version import InvalidVersion, Version

from ..cli_logger import logger
from ..registry import TARGET_KINDS, Target, is_true

CMAKE_VERSION = "3.28.0"

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BRACKET_OPEN = re.compile(r"\[(=*)\[")
_VAR_REF = re.compile(r"\$(ENV)?\{([^${}]*)\}")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", ";": ";"}

TRUE_CONSTANTS = {"1", "ON", "YES", "TRUE", "Y"}
UNARY_TESTS = {"EXISTS", "COMMAND", "DEFINED", "TARGET", "POLICY",
               "IS_DIRECTORY", "IS_ABSOLUTE", "IS_SYMLINK"}
BINARY_TESTS = {"STREQUAL", "STRLESS", "STRGREATER", "EQUAL", "LESS", "GREATER",
                "LESS_EQUAL", "GREATER_EQUAL", "MATCHES", "VERSION_EQUAL",
                "VERSION_LESS", "VERSION_GREATER", "VERSION_LESS_EQUAL",
                "VERSION_GREATER_EQUAL", "IN_LIST"}
MAX_INCLUDE_DEPTH = 32


class CMakeScriptError(Exception):
    pass


class _Return(Exception):
    pass


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class Argument:
    __slots__ = ("value", "quoted", "raw")

    def __init__(self, value, quoted=False, raw=False):
        self.value = value
        self.quoted = quoted
        self.raw = raw

    def __repr__(self):
        return f"Argument({self.value!r}, quoted={self.quoted})"


class Command:
    __slots__ = ("name", "args", "line")

    def __init__(self, name, args, line):
        self.name = name
        self.args = args
        self.line = line

    def __repr__(self):
        return f"Command({self.name!r}, line={self.line})"


# ---------------------------------------------------------------- parsing

def _skip_comment(source, i, line):
    bracket = _BRACKET_OPEN.match(source, i + 1)
    if bracket:
        close = "]" + bracket.group(1) + "]"
        end = source.find(close, bracket.end())
        end = len(source) if end == -1 else end + len(close)
        return end, line + source.count("\n", i, end)
    end = source.find("\n", i)
    return (len(source) if end == -1 else end), line


def _parse_bracket(source, i, line, filename):
    bracket = _BRACKET_OPEN.match(source, i)
    close = "]" + bracket.group(1) + "]"
    start = bracket.end()
    end = source.find(close, start)
    if end == -1:
        raise CMakeScriptError(f"{filename}:{line}: unterminated bracket argument")
    value = source[start:end]
    if value.startswith("\n"):
        value = value[1:]
    return value, end + len(close), line + source.count("\n", i, end)


def _parse_quoted(source, i, line, filename):
    buf = []
    n = len(source)
    while i < n:
        c = source[i]
        if c == "\\" and i + 1 < n:
            nxt = source[i + 1]
            if nxt == "\n":
                line += 1
            else:
                buf.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if c == '"':
            return "".join(buf), i + 1, line
        if c == "\n":
            line += 1
        buf.append(c)
        i += 1
    raise CMakeScriptError(f"{filename}:{line}: unterminated quoted argument")


def _parse_unquoted(source, i):
    buf = []
    n = len(source)
    while i < n:
        c = source[i]
        if c.isspace() or c in '()#"':
            break
        if c == "\\" and i + 1 < n:
            buf.append(_ESCAPES.get(source[i + 1], source[i + 1]))
            i += 2
            continue
        buf.append(c)
        i += 1
    return "".join(buf), i


def _parse_arguments(source, i, line, filename):
    args = []
    depth = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c == "\n":
            line += 1
            i += 1
        elif c.isspace():
            i += 1
        elif c == "#":
            i, line = _skip_comment(source, i, line)
        elif c == "(":
            depth += 1
            args.append(Argument("("))
            i += 1
        elif c == ")":
            if depth == 0:
                return args, i + 1, line
            depth -= 1
            args.append(Argument(")"))
            i += 1
        elif c == '"':
            value, i, line = _parse_quoted(source, i + 1, line, filename)
            args.append(Argument(value, quoted=True))
        elif c == "[" and _BRACKET_OPEN.match(source, i):
            value, i, line = _parse_bracket(source, i, line, filename)
            args.append(Argument(value, quoted=True, raw=True))
        else:
            value, i = _parse_unquoted(source, i)
            args.append(Argument(value))
    raise CMakeScriptError(f"{filename}:{line}: missing ')'")


def parse(source, filename="<string>"):
    """Split CMake source into a flat list of Commands."""
    commands = []
    i, line = 0, 1
    n = len(source)
    while i < n:
        c = source[i]
        if c == "\n":
            line += 1
            i += 1
            continue
        if c.isspace():
            i += 1
            continue
        if c == "#":
            i, line = _skip_comment(source, i, line)
            continue
        ident = _IDENT.match(source, i)
        if not ident:
            raise CMakeScriptError(f"{filename}:{line}: unexpected character {c!r}")
        i = ident.end()
        while i < n and source[i] in " \t":
            i += 1
        if i >= n or source[i] != "(":
            raise CMakeScriptError(f"{filename}:{line}: expected '(' after {ident.group(0)}")
        start_line = line
        args, i, line = _parse_arguments(source, i + 1, line, filename)
        commands.append(Command(ident.group(0).lower(), args, start_line))
    return commands


# ------------------------------------------------------------- conditions

def _version_key(text):
    try:
        return Version(text)
    except InvalidVersion:
        parts = re.findall(r"\d+", text)
        return Version(".".join(parts) if parts else "0")


def _to_number(text):
    try:
        return float(text)
    except ValueError:
        return None


class _ConditionParser:
    def __init__(self, tokens, evaluator):
        self.tokens = tokens
        self.pos = 0
        self.evaluator = evaluator

    def _peek(self):
        if self.pos < len(self.tokens):
            value, quoted = self.tokens[self.pos]
            return None if quoted else value
        return None

    def _advance(self):
        token = self.tokens[self.pos] if self.pos < len(self.tokens) else ("", True)
        self.pos += 1
        return token

    def parse(self):
        if not self.tokens:
            return False
        return self._or()

    def _or(self):
        result = self._and()
        while self._peek() == "OR":
            self._advance()
            right = self._and()
            result = result or right
        return result

    def _and(self):
        result = self._not()
        while self._peek() == "AND":
            self._advance()
            right = self._not()
            result = result and right
        return result

    def _not(self):
        if self._peek() == "NOT":
            self._advance()
            return not self._not()
        return self._primary()

    def _primary(self):
        if self._peek() == "(":
            self._advance()
            result = self._or()
            if self._peek() == ")":
                self._advance()
            return result
        if self._peek() in UNARY_TESTS:
            test = self._advance()[0]
            operand = self._advance()[0]
            return self._unary(test, operand)
        left = self._advance()
        if self._peek() in BINARY_TESTS:
            op = self._advance()[0]
            right = self._advance()
            return self._binary(left, op, right)
        return self._truth(left)

    def _value(self, token):
        value, quoted = token
        if not quoted and value in self.evaluator.scope.variables:
            return self.evaluator.scope.variables[value]
        return value

    def _truth(self, token):
        value, quoted = token
        upper = value.upper()
        if upper in TRUE_CONSTANTS:
            return True
        number = _to_number(value)
        if number is not None:
            return number != 0
        if not is_true(value):
            return False
        if quoted:
            return False
        return is_true(self.evaluator.scope.variables.get(value))

    def _unary(self, test, operand):
        scope = self.evaluator.scope
        if test == "TARGET":
            return scope.targets.exists(operand)
        if test == "DEFINED":
            if operand.startswith("ENV{") and operand.endswith("}"):
                return operand[4:-1] in os.environ
            return operand in scope.variables
        if test == "EXISTS":
            return bool(operand) and os.path.exists(operand)
        if test == "IS_DIRECTORY":
            return os.path.isdir(operand)
        if test == "IS_ABSOLUTE":
            return os.path.isabs(operand)
        if test == "IS_SYMLINK":
            return os.path.islink(operand)
        if test == "COMMAND":
            return operand.lower() in ScriptEvaluator.COMMANDS
        return True  # POLICY

    def _binary(self, left, op, right):
        lhs = self._value(left)
        rhs = self._value(right)
        if op == "STREQUAL":
            return lhs == rhs
        if op == "STRLESS":
            return lhs < rhs
        if op == "STRGREATER":
            return lhs > rhs
        if op == "MATCHES":
            try:
                match = re.search(right[0], lhs)
            except re.error:
                return False
            if match:
                scope = self.evaluator.scope
                scope.set("CMAKE_MATCH_0", match.group(0))
                for index, group in enumerate(match.groups(), start=1):
                    scope.set(f"CMAKE_MATCH_{index}", group or "")
            return match is not None
        if op == "IN_LIST":
            return lhs in self.evaluator.scope.get(right[0]).split(";")
        if op.startswith("VERSION_"):
            a, b = _version_key(lhs), _version_key(rhs)
            return {
                "VERSION_EQUAL": a == b,
                "VERSION_LESS": a < b,
                "VERSION_GREATER": a > b,
                "VERSION_LESS_EQUAL": a <= b,
                "VERSION_GREATER_EQUAL": a >= b,
            }[op]
        a, b = _to_number(lhs), _to_number(rhs)
        if a is None or b is None:
            return False
        return {
            "EQUAL": a == b,
            "LESS": a < b,
            "GREATER": a > b,
            "LESS_EQUAL": a <= b,
            "GREATER_EQUAL": a >= b,
        }[op]


# -------------------------------------------------------------- evaluator

class ScriptEvaluator:
    """Runs parsed CMake commands against a ConfigurationScope."""

    COMMANDS = {
        "set", "unset", "list", "get_filename_component", "file", "include",
        "add_library", "set_target_properties", "set_property",
        "target_include_directories", "target_link_libraries",
        "find_dependency", "find_package", "message", "set_and_check",
    }

    def __init__(self, scope, on_find_package=None):
        self.scope = scope
        self.on_find_package = on_find_package
        self._depth = 0
        self.scope.variables.setdefault("CMAKE_VERSION", CMAKE_VERSION)

    # ---- expansion
    def _replace(self, match):
        if match.group(1):
            return os.environ.get(match.group(2), "")
        return str(self.scope.get(match.group(2), ""))

    def expand(self, text):
        for _ in range(MAX_INCLUDE_DEPTH):
            expanded = _VAR_REF.sub(self._replace, text)
            if expanded == text:
                break
            text = expanded
        return text

    def _expand_args(self, args):
        values = []
        for arg in args:
            if arg.raw:
                values.append(arg.value)
            elif arg.quoted:
                values.append(self.expand(arg.value))
            else:
                values.extend(v for v in self.expand(arg.value).split(";") if v)
        return values

    def _condition_tokens(self, args):
        tokens = []
        for arg in args:
            if arg.raw:
                tokens.append((arg.value, True))
            elif arg.quoted:
                tokens.append((self.expand(arg.value), True))
            else:
                tokens.extend((v, False) for v in self.expand(arg.value).split(";") if v)
        return tokens

    def condition(self, args):
        return _ConditionParser(self._condition_tokens(args), self).parse()

    # ---- entry points
    def include(self, path):
        """Evaluate the file at path. Returns False when it could not be run."""
        path = os.path.abspath(path)
        if self._depth >= MAX_INCLUDE_DEPTH:
            logger.warning(f"Include depth exceeded at {path}")
            return False
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                source = f.read()
        except OSError as e:
            logger.warning(f"Could not read CMake file {path}: {e}")
            return False
        return self.run_source(source, filename=path)

    def run_source(self, source, filename="<string>"):
        saved = {key: self.scope.variables.get(key) for key in ("CMAKE_CURRENT_LIST_FILE", "CMAKE_CURRENT_LIST_DIR")}
        if filename != "<string>":
            self.scope.set("CMAKE_CURRENT_LIST_FILE", filename)
            self.scope.set("CMAKE_CURRENT_LIST_DIR", os.path.dirname(filename))
        self._depth += 1
        try:
            self._run(parse(source, filename))
            return True
        except _Return:
            return True
        except CMakeScriptError as e:
            logger.warning(f"Stopped evaluating {filename}: {e}")
            return False
        finally:
            self._depth -= 1
            for key, value in saved.items():
                if value is None:
                    self.scope.unset(key)
                else:
                    self.scope.set(key, value)

    # ---- control flow
    def _run(self, commands):
        i = 0
        while i < len(commands):
            command = commands[i]
            if command.name == "if":
                end, branches = self._if_branches(commands, i)
                for condition, start, stop in branches:
                    if condition is None or self.condition(condition):
                        self._run(commands[start:stop])
                        break
                i = end + 1
            elif command.name == "foreach":
                end = self._block_end(commands, i, "foreach", "endforeach")
                self._foreach(command, commands[i + 1:end])
                i = end + 1
            elif command.name in ("while", "function", "macro"):
                end = self._block_end(commands, i, command.name, "end" + command.name)
                logger.debug(f"Skipping {command.name}() block at line {command.line}")
                i = end + 1
            elif command.name == "return":
                raise _Return()
            elif command.name == "break":
                raise _Break()
            elif command.name == "continue":
                raise _Continue()
            else:
                self._execute(command)
                i += 1

    def _block_end(self, commands, start, opener, closer):
        depth = 0
        for index in range(start, len(commands)):
            name = commands[index].name
            if name == opener:
                depth += 1
            elif name == closer:
                depth -= 1
                if depth == 0:
                    return index
        raise CMakeScriptError(f"{opener}() at line {commands[start].line} has no {closer}()")

    def _if_branches(self, commands, start):
        branches = []
        condition = commands[start].args
        branch_start = start + 1
        depth = 0
        for index in range(start + 1, len(commands)):
            name = commands[index].name
            if name == "if":
                depth += 1
            elif name == "endif":
                if depth == 0:
                    branches.append((condition, branch_start, index))
                    return index, branches
                depth -= 1
            elif depth == 0 and name in ("elseif", "else"):
                branches.append((condition, branch_start, index))
                condition = commands[index].args if name == "elseif" else None
                branch_start = index + 1
        raise CMakeScriptError(f"if() at line {commands[start].line} has no endif()")

    def _foreach(self, command, body):
        args = self._expand_args(command.args)
        if not args:
            return
        var, rest = args[0], args[1:]
        items = []
        if rest and rest[0] == "RANGE":
            bounds = [int(v) for v in rest[1:4]]
            if len(bounds) == 1:
                bounds = [0, bounds[0]]
            step = bounds[2] if len(bounds) > 2 else 1
            items = [str(v) for v in range(bounds[0], bounds[1] + 1, step)]
        elif rest and rest[0] == "IN":
            mode = None
            for value in rest[1:]:
                if value in ("LISTS", "ITEMS"):
                    mode = value
                elif mode == "LISTS":
                    items.extend(v for v in self.scope.get(value).split(";") if v)
                else:
                    items.append(value)
        else:
            items = rest
        previous = self.scope.variables.get(var)
        try:
            for item in items:
                self.scope.set(var, item)
                try:
                    self._run(body)
                except _Continue:
                    continue
        except _Break:
            pass
        finally:
            if previous is None:
                self.scope.unset(var)
            else:
                self.scope.set(var, previous)

    # ---- commands
    def _execute(self, command):
        handler = getattr(self, f"_cmd_{command.name}", None)
        if handler is None:
            return
        handler(self._expand_args(command.args))

    def _cmd_set(self, args):
        if not args:
            return
        name, values = args[0], args[1:]
        if values and values[-1] == "PARENT_SCOPE":
            values = values[:-1]
        if "CACHE" in values:
            index = values.index("CACHE")
            force = "FORCE" in values[index:]
            values = values[:index]
            if name in self.scope.variables and not force:
                return
        if values:
            self.scope.set(name, values)
        else:
            self.scope.unset(name)

    _cmd_set_and_check = _cmd_set

    def _cmd_unset(self, args):
        if args:
            self.scope.unset(args[0])

    def _cmd_list(self, args):
        if len(args) < 2:
            return
        op, name, values = args[0], args[1], args[2:]
        current = [v for v in self.scope.get(name).split(";") if v]
        if op == "APPEND":
            self.scope.set(name, current + values)
        elif op == "PREPEND":
            self.scope.set(name, values + current)
        elif op == "REMOVE_DUPLICATES":
            self.scope.set(name, list(dict.fromkeys(current)))
        elif op == "REMOVE_ITEM":
            self.scope.set(name, [v for v in current if v not in values])
        elif op == "LENGTH" and values:
            self.scope.set(values[0], str(len(current)))

    def _cmd_get_filename_component(self, args):
        if len(args) < 3:
            return
        name, path, mode = args[0], args[1], args[2]
        base = os.path.basename(path)
        if mode in ("PATH", "DIRECTORY"):
            value = os.path.dirname(path)
        elif mode == "NAME":
            value = base
        elif mode == "NAME_WE":
            value = base.split(".", 1)[0]
        elif mode == "EXT":
            value = base[len(base.split(".", 1)[0]):]
        elif mode in ("ABSOLUTE", "REALPATH"):
            if not os.path.isabs(path):
                path = os.path.join(self.scope.get("CMAKE_CURRENT_LIST_DIR", os.getcwd()), path)
            value = os.path.realpath(path) if mode == "REALPATH" else os.path.normpath(path)
        else:
            return
        self.scope.set(name, value)

    def _cmd_file(self, args):
        if len(args) < 2 or args[0] not in ("GLOB", "GLOB_RECURSE"):
            return
        recursive = args[0] == "GLOB_RECURSE"
        name, rest = args[1], args[2:]
        relative = None
        patterns = []
        skip = False
        for index, value in enumerate(rest):
            if skip:
                skip = False
                continue
            if value == "RELATIVE" and index + 1 < len(rest):
                relative = rest[index + 1]
                skip = True
            elif value in ("LIST_DIRECTORIES", "FOLLOW_SYMLINKS", "CONFIGURE_DEPENDS"):
                skip = value == "LIST_DIRECTORIES"
            else:
                patterns.append(value)
        matches = []
        for pattern in patterns:
            if recursive:
                pattern = os.path.join(os.path.dirname(pattern), "**", os.path.basename(pattern))
            matches.extend(glob.glob(pattern, recursive=recursive))
        matches = sorted(set(matches))
        if relative:
            matches = [os.path.relpath(m, relative) for m in matches]
        self.scope.set(name, matches)

    def _cmd_include(self, args):
        if not args:
            return
        path = args[0]
        optional = "OPTIONAL" in args[1:]
        if not os.path.isabs(path):
            if not path.endswith(".cmake") and "/" not in path:
                # a module shipped with CMake itself
                return
            path = os.path.join(self.scope.get("CMAKE_CURRENT_LIST_DIR", os.getcwd()), path)
        if not os.path.isfile(path):
            if not optional:
                logger.warning(f"include() could not find {path}")
            return
        self.include(path)

    def _cmd_add_library(self, args):
        if not args:
            return
        name, rest = args[0], args[1:]
        targets = self.scope.targets
        if targets.exists(name):
            logger.debug(f"Target {name} already exists; keeping the first definition")
            return
        if rest and rest[0] == "ALIAS":
            if len(rest) > 1 and targets.exists(rest[1]):
                targets.add_alias(name, rest[1])
            return
        kind = "STATIC"
        if rest and rest[0] in TARGET_KINDS:
            kind = rest[0]
        targets.add(Target(name, kind=kind, imported="IMPORTED" in rest))

    def _cmd_set_target_properties(self, args):
        if "PROPERTIES" not in args:
            return
        index = args.index("PROPERTIES")
        names, pairs = args[:index], args[index + 1:]
        for name in names:
            target = self.scope.targets.get(name)
            if target is None:
                logger.debug(f"set_target_properties on unknown target {name}")
                continue
            for key, value in zip(pairs[0::2], pairs[1::2]):
                target.set_property(key, value)

    def _cmd_set_property(self, args):
        if not args or args[0] != "TARGET" or "PROPERTY" not in args:
            return
        index = args.index("PROPERTY")
        names = [a for a in args[1:index] if a not in ("APPEND", "APPEND_STRING")]
        append = "APPEND" in args[1:index] or "APPEND_STRING" in args[1:index]
        if index + 1 >= len(args):
            return
        key, values = args[index + 1], args[index + 2:]
        for name in names:
            target = self.scope.targets.get(name)
            if target is not None:
                target.set_property(key, ";".join(values), append=append)

    def _target_items(self, args, keywords, default_public=True):
        public = default_public
        items = []
        for value in args:
            if value in keywords:
                public = keywords[value]
            elif value in ("SYSTEM", "BEFORE", "AFTER"):
                continue
            elif public:
                items.append(value)
        return items

    def _cmd_target_include_directories(self, args):
        target = self.scope.targets.get(args[0]) if args else None
        if target is None:
            return
        items = self._target_items(args[1:], {"INTERFACE": True, "PUBLIC": True, "PRIVATE": False})
        target.set_property("INTERFACE_INCLUDE_DIRECTORIES", ";".join(items), append=True)

    def _cmd_target_link_libraries(self, args):
        target = self.scope.targets.get(args[0]) if args else None
        if target is None:
            return
        keywords = {"INTERFACE": True, "PUBLIC": True, "PRIVATE": False,
                    "LINK_PUBLIC": True, "LINK_PRIVATE": False, "LINK_INTERFACE_LIBRARIES": True}
        items = self._target_items(args[1:], keywords)
        target.set_property("INTERFACE_LINK_LIBRARIES", ";".join(items), append=True)

    def _cmd_find_dependency(self, args):
        if not args or self.on_find_package is None:
            return
        name = args[0]
        found = self.on_find_package(name)
        if found is None:
            return
        self.scope.set(f"{name}_FOUND", "TRUE" if found else "FALSE")

    _cmd_find_package = _cmd_find_dependency

    def _cmd_message(self, args):
        if not args:
            return
        mode, text = args[0], " ".join(args[1:])
        if mode in ("FATAL_ERROR", "SEND_ERROR"):
            raise CMakeScriptError(text)
        if mode not in ("STATUS", "WARNING", "AUTHOR_WARNING", "NOTICE", "VERBOSE", "DEBUG", "TRACE", "DEPRECATION", "CHECK_START", "CHECK_PASS", "CHECK_FAIL"):
            text = " ".join(args)
        logger.debug(f"[cmake] {text}")
