#!/usr/bin/env python3
"""
GNU v2 C++ demangler
Demangles the g++ 2.x symbols found in the SimCity 3000 Unlimited Linux
debug information, rendered the way libiberty's cplus_demangle does with
DMGL_PARAMS | DMGL_ANSI:

    $ ./gnu2_demangle.py QueryInterface__7cSC3AppUlPPv
    cSC3App::QueryInterface(unsigned long, void **)
"""
import sys
from io import StringIO

FUNDAMENTAL_TYPES = {
    'v': 'void', 'b': 'bool', 'c': 'char', 's': 'short', 'i': 'int', 'l': 'long',
    'x': 'long long', 'f': 'float', 'd': 'double', 'r': 'long double',
    'w': 'wchar_t', 'e': '...',
}

# Fundamental types that accept an explicit sign
SIGNED_TYPES = {'c', 's', 'i', 'l', 'x'}

OPERATORS = {
    'nw': ' new', 'dl': ' delete', 'vn': ' new []', 'vd': ' delete []',
    'as': '=', 'ne': '!=', 'eq': '==', 'ge': '>=', 'gt': '>', 'le': '<=', 'lt': '<',
    'pl': '+', 'apl': '+=', 'mi': '-', 'ami': '-=', 'ml': '*', 'amu': '*=', 'aml': '*=',
    'md': '%', 'amd': '%=', 'dv': '/', 'adv': '/=', 'aa': '&&', 'oo': '||', 'nt': '!',
    'pp': '++', 'mm': '--', 'or': '|', 'aor': '|=', 'er': '^', 'aer': '^=',
    'ad': '&', 'aad': '&=', 'co': '~', 'cl': '()', 'ls': '<<', 'als': '<<=',
    'rs': '>>', 'ars': '>>=', 'rf': '->', 'vc': '[]', 'cm': ',', 'rm': '->*',
    'cn': '?:', 'mx': '>?', 'mn': '<?', 'sz': 'sizeof ',
}

DESTRUCTOR_PREFIXES = ('_$_', '_._')
CLASS_START = set('0123456789Qt')


def peek(src, n=1):
    pos = src.tell()
    text = src.read(n)
    src.seek(pos)
    return text


def expect(src, char):
    found = src.read(1)
    if found != char:
        raise ValueError(f"Expected {char!r}, found {found or 'end of symbol'!r}")


def read_digits(src):
    digits = ''
    while peek(src).isdigit():
        digits += src.read(1)
    return digits


def read_count(src):
    """Read a count: one digit, or several digits closed by an underscore."""
    start = src.tell()
    digits = read_digits(src)
    if not digits:
        raise ValueError('Expected a count')
    if len(digits) > 1:
        if peek(src) == '_':
            src.read(1)
        else:
            # Only the first digit belongs to the count
            src.seek(start + 1)
            digits = digits[0]
    return int(digits)


def read_length_name(src):
    digits = read_digits(src)
    if not digits:
        raise ValueError('Expected a length prefixed name')
    length = int(digits)
    name = src.read(length)
    if length == 0 or len(name) != length:
        raise ValueError(f'Name length {length} runs past the end of the symbol')
    return name


class CxxType:
    """A parameter type.

    kind is 'name' (fundamental, class or template), 'pointer', 'reference',
    'array', 'function' or 'member'. Pointers, references and arrays wrap
    target; functions carry params and return their target. A member wraps
    the function or data type of a pointer to member of the class in name,
    a const or volatile member function carries the qualifier itself.
    """

    def __init__(self, kind, name=None, target=None, params=None, dim=None):
        self.kind = kind
        self.name = name
        self.target = target
        self.params = params or []
        self.dim = dim
        self.const = False
        self.volatile = False

    def qualified(self, const=False, volatile=False):
        copy = CxxType(self.kind, self.name, self.target, self.params, self.dim)
        copy.const = self.const or const
        copy.volatile = self.volatile or volatile
        return copy

    def cv(self, ansi=True):
        if not ansi:
            return ''
        words = []
        if self.const:
            words.append('const')
        if self.volatile:
            words.append('volatile')
        return ' '.join(words)

    def render(self, ansi=True, declarator=''):
        cv = self.cv(ansi)
        if self.kind == 'name':
            text = f'{self.name} {cv}' if cv else self.name
            return f'{text} {declarator}' if declarator else text
        if self.kind in ('pointer', 'reference'):
            inner = ('*' if self.kind == 'pointer' else '&') + cv
            if declarator:
                inner += (' ' if cv else '') + declarator
            if self.target.kind in ('function', 'array'):
                inner = f'({inner})'
            return self.target.render(ansi, inner)
        if self.kind == 'array':
            return self.target.render(ansi, f'{declarator}[{self.dim}]')
        if self.kind == 'function':
            suffix = f' {cv}' if cv else ''
            return self.target.render(ansi, f'{declarator}({render_params(self.params, ansi)}){suffix}')
        if self.kind == 'member':
            return self.target.render(ansi, f'({self.name}::{declarator})')
        raise ValueError(f'Unknown type kind {self.kind!r}')

    def __str__(self):
        return self.render()


def render_params(params, ansi=True):
    if not params:
        return 'void'
    return ', '.join(p.render(ansi) for p in params)


class CxxSymbol:
    def __init__(self, name, owner=None, params=None, const=False, static=False):
        self.name = name
        self.owner = owner
        self.params = params or []
        self.const = const
        self.static = static

    @property
    def qualified_name(self):
        return f'{self.owner}::{self.name}' if self.owner else self.name

    def render(self, params=True, ansi=True):
        if not params:
            return self.qualified_name
        text = f'{self.qualified_name}({render_params(self.params, ansi)})'
        if self.const and ansi:
            text += ' const'
        return text

    def __str__(self):
        return self.render()


def parse_template(src, types):
    expect(src, 't')
    name = read_length_name(src)
    args = []
    for _ in range(read_count(src)):
        if peek(src) == 'Z':
            src.read(1)
            args.append(parse_type(src, types).render())
        else:
            args.append(parse_template_value(src, parse_type(src, types)))
    text = ', '.join(args)
    if text.endswith('>'):
        text += ' '
    return f'{name}<{text}>', name


def parse_template_value(src, typ):
    if typ.kind != 'name' or typ.name not in ('bool', 'char', 'short', 'int', 'long',
                                              'unsigned char', 'unsigned short',
                                              'unsigned int', 'unsigned long'):
        raise ValueError(f'Unsupported template value of type {typ}')
    negative = peek(src) == 'm'
    if negative:
        src.read(1)
    digits = read_digits(src)
    if not digits:
        raise ValueError('Expected a template value')
    if peek(src) == '_':
        src.read(1)
    if typ.name == 'bool':
        return 'true' if int(digits) else 'false'
    return f"-{digits}" if negative else digits


def parse_class_name(src, types):
    """Parse a class, qualified class or template class name.

    Returns (full name, unqualified name without template arguments).
    """
    c = peek(src)
    if c == 'Q':
        src.read(1)
        if peek(src) == '_':
            src.read(1)
            digits = read_digits(src)
            expect(src, '_')
            count = int(digits or 0)
        else:
            count = int(src.read(1) or 0)
        if count < 1:
            raise ValueError('Qualified name without components')
        parts = []
        for _ in range(count):
            if peek(src) == 'Q':
                raise ValueError('Nested qualified name')
            parts.append(parse_class_name(src, types))
        return '::'.join(full for full, _ in parts), parts[-1][1]
    if c == 't':
        return parse_template(src, types)
    if c.isdigit():
        name = read_length_name(src)
        return name, name
    raise ValueError(f"Expected a class name, found {c or 'end of symbol'!r}")


def parse_type(src, types):
    c = peek(src)
    if not c:
        raise ValueError('Unexpected end of symbol while reading a type')
    if c in 'CV':
        src.read(1)
        return parse_type(src, types).qualified(const=c == 'C', volatile=c == 'V')
    if c == 'P':
        src.read(1)
        return CxxType('pointer', target=parse_type(src, types))
    if c == 'R':
        src.read(1)
        return CxxType('reference', target=parse_type(src, types))
    if c == 'A':
        src.read(1)
        dim = read_digits(src)
        expect(src, '_')
        return CxxType('array', target=parse_type(src, types), dim=dim)
    if c == 'F':
        src.read(1)
        params = parse_params(src, types, stop='_', remember=False)
        expect(src, '_')
        return CxxType('function', target=parse_type(src, types), params=params)
    if c in 'MO':
        # Pointer to member function M<class>[C|V]F<args>_<return>,
        # pointer to data member O<class>_<type>
        src.read(1)
        owner = parse_class_name(src, types)[0]
        if c == 'M':
            qualifier = peek(src)
            if qualifier in ('C', 'V'):
                src.read(1)
            expect(src, 'F')
            params = parse_params(src, types, stop='_', remember=False)
            expect(src, '_')
            target = CxxType('function', target=parse_type(src, types), params=params)
            target = target.qualified(const=qualifier == 'C', volatile=qualifier == 'V')
        else:
            expect(src, '_')
            target = parse_type(src, types)
        return CxxType('member', name=owner, target=target)
    if c == 'G':
        src.read(1)
        return parse_type(src, types)
    if c in 'US':
        src.read(1)
        base = src.read(1)
        if base not in SIGNED_TYPES or (c == 'S' and base != 'c'):
            raise ValueError(f'Invalid {"unsigned" if c == "U" else "signed"} type {base!r}')
        prefix = 'unsigned' if c == 'U' else 'signed'
        return CxxType('name', name=f'{prefix} {FUNDAMENTAL_TYPES[base]}')
    if c in CLASS_START:
        return CxxType('name', name=parse_class_name(src, types)[0])
    if c in FUNDAMENTAL_TYPES:
        src.read(1)
        return CxxType('name', name=FUNDAMENTAL_TYPES[c])
    raise ValueError(f'Unknown type code {c!r}')


def parse_params(src, types, stop='', remember=True):
    """Parse an argument list, remembering each type for T and N back references.

    Nested argument lists of function and member function types resolve
    back references but are not remembered themselves.
    """
    params = []
    while peek(src) and peek(src) != stop:
        c = peek(src)
        if c in 'TN':
            src.read(1)
            repeat = read_count(src) if c == 'N' else 1
            index = read_count(src)
            if index >= len(types):
                raise ValueError(f'Back reference to unknown type {index}')
            params.extend([types[index]] * repeat)
        else:
            typ = parse_type(src, types)
            if remember:
                types.append(typ)
            params.append(typ)
    return params


def function_name(name, base_name):
    if not name:
        if base_name is None:
            raise ValueError('Constructor outside of a class')
        return base_name
    if name.startswith('__op'):
        # Type conversion operator, the target type is mangled in the name
        src = StringIO(name[4:])
        typ = parse_type(src, [])
        if peek(src):
            raise ValueError(f'Unparsed conversion operator type in {name!r}')
        return f'operator {typ}'
    if name.startswith('__'):
        op = OPERATORS.get(name[2:])
        if op is None:
            raise ValueError(f'Unknown operator {name!r}')
        return 'operator' + op
    return name


def parse_function(name, signature):
    src = StringIO(signature)
    types = []
    const = static = False
    owner = base_name = None
    if peek(src) in ('C', 'S') and peek(src, 2)[1:] in CLASS_START:
        const = src.read(1) == 'C'
        static = not const
    c = peek(src)
    if c and c in CLASS_START:
        owner, base_name = parse_class_name(src, types)
        # The class is the first remembered type
        types.append(CxxType('name', name=owner))
    elif c == 'F':
        src.read(1)
    else:
        raise ValueError(f"Expected a class or 'F', found {c or 'end of symbol'!r}")
    params = parse_params(src, types)
    return CxxSymbol(function_name(name, base_name), owner, params, const=const, static=static)


def parse_destructor(signature):
    src = StringIO(signature)
    owner, base_name = parse_class_name(src, [])
    if peek(src):
        raise ValueError(f'Unexpected characters after destructor class: {src.read()!r}')
    return CxxSymbol(f'~{base_name}', owner)


def parse(mangled):
    """Parse a GNU v2 function symbol into a CxxSymbol, ValueError when it is not one."""
    if not mangled:
        raise ValueError('Empty symbol')
    for prefix in DESTRUCTOR_PREFIXES:
        if mangled.startswith(prefix):
            return parse_destructor(mangled[len(prefix):])
    # The function name may itself contain '__', try every split point
    error = None
    start = 0
    while True:
        split = mangled.find('__', start)
        if split == -1:
            break
        try:
            return parse_function(mangled[:split], mangled[split + 2:])
        except ValueError as e:
            error = e
        start = split + 1
    reason = f': {error}' if error else ''
    raise ValueError(f'{mangled!r} is not a GNU v2 function symbol{reason}')


def demangle(mangled, params=True, ansi=True):
    return parse(mangled).render(params=params, ansi=ansi)


def main():
    if len(sys.argv) != 2:
        print(f'usage: {sys.argv[0]} <mangled_name>')
        sys.exit(1)
    try:
        print(demangle(sys.argv[1]))
    except ValueError as e:
        print(f'Error: {e}', file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
