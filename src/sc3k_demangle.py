#!/usr/bin/env python3
"""
SimCity 3000 Unlimited Linux symbol demangler
Turns the mangled debug symbol names of one class into a pure virtual
C++ interface declaration
"""
import argparse
import os
import shutil
import sys
import tempfile
from pathlib import Path

import cxxfilt

import gnu2_demangle

# Configuration (patch-friendly for tests)
DEFAULT_ABI = 'gnu2'
DEFAULT_FORMAT_VERSION = 'extended'
# legacy: blank lines are demangled like any other line and 'virtual ' prototypes are not recognized
FORMAT_VERSIONS = ('legacy', 'extended')

THUNK_PREFIX = '__thunk_'
VIRTUAL_PROTOTYPE_PREFIX = 'virtual '

BASE_INTERFACE_NAME = 'cIGZUnknown'
BASE_INTERFACE_HEADER = 'cIGZUnknown.h'
UNKNOWN_INTERFACE_METHOD = 'QueryInterface(uint32_t, void**)'
# QueryInterface, AddRef and Release
UNKNOWN_INTERFACE_METHOD_COUNT = 3

# Ordered, never a dict: unsigned types come first and longer tokens
# precede the shorter tokens they start with.
PARAMETER_SUBSTITUTIONS = [
    # The demangler puts a space in front of a pointer or reference modifier
    (' &', '&'),
    (' *', '*'),
    (' **', '**'),
    ('unsigned char', 'uint8_t'),
    ('unsigned short', 'uint16_t'),
    ('unsigned int', 'uint32_t'),
    ('unsigned long long', 'uint64_t'),
    ('unsigned long', 'uint32_t'),
    ('char', 'int8_t'),
    ('short', 'int16_t'),
    ('int', 'int32_t'),
    ('long long', 'int64_t'),
    ('long', 'int32_t'),
]

WORD_PRECEDERS = (' ', '(')
WORD_TERMINATORS = (',', ')', ' ', '*', '&')


class SymbolTransformError(Exception):
    """Base class for errors that abort the transformation of a symbol file."""


class MalformedInputError(SymbolTransformError):
    """A thunk or virtual prototype prefix is missing its delimiter."""


class DemangleError(SymbolTransformError):
    def __init__(self, identifier, reason=None):
        self.identifier = identifier
        self.reason = reason
        message = f"Failed to demangle '{identifier}'"
        if reason:
            message += f': {reason}'
        super().__init__(message)


class EmptySignatureError(SymbolTransformError):
    def __init__(self, identifier):
        self.identifier = identifier
        super().__init__(f"The demangler returned no text for '{identifier}'")


def classify_line(line, format_version=DEFAULT_FORMAT_VERSION):
    """Return the mangled identifier carried by a raw symbol line.

    None means the line is skipped. Raises MalformedInputError when a
    recognized prefix cannot be stripped.
    """
    if format_version not in FORMAT_VERSIONS:
        raise ValueError(f'Unknown format version: {format_version}')
    line = line.rstrip('\r\n')

    if not line:
        return None if format_version == 'extended' else line

    if line.startswith(THUNK_PREFIX):
        # The thunk prefix uses the format: __thunk_<unique number>_
        # The function name follows this prefix.
        prefix_end = line.find('_', len(THUNK_PREFIX) + 1)
        if prefix_end == -1:
            raise MalformedInputError(f'Failed to find the end of the thunk prefix: {line}')
        return line[prefix_end + 1:]

    if format_version == 'extended' and line.startswith(VIRTUAL_PROTOTYPE_PREFIX):
        # virtual <return type> <mangled name>(<parameters>), keep only <mangled name>
        return_type_end = line.find(' ', len(VIRTUAL_PROTOTYPE_PREFIX) + 1)
        if return_type_end == -1:
            raise MalformedInputError(f'Failed to find the end of the virtual function return type: {line}')
        name_start = return_type_end + 1
        name_end = line.find('(', name_start)
        if name_end == -1:
            raise MalformedInputError(f'Failed to find the end of the virtual function prototype prefix: {line}')
        return line[name_start:name_end]

    return line


class Gnu2Demangler:
    """g++ 2.x symbols, the ABI of the SimCity 3000 Unlimited Linux release."""
    abi = 'gnu2'

    def demangle(self, identifier, with_params=True, ansi=True):
        try:
            return gnu2_demangle.demangle(identifier, params=with_params, ansi=ansi)
        except ValueError as e:
            raise DemangleError(identifier, str(e)) from e


class ItaniumDemangler:
    """_Z symbols of g++ 3 and later, demangled by libstdc++ through cxxfilt."""
    abi = 'itanium'

    def demangle(self, identifier, with_params=True, ansi=True):
        try:
            text = cxxfilt.demangle(identifier, external_only=True)
        except cxxfilt.InvalidName as e:
            raise DemangleError(identifier, 'not an Itanium C++ ABI name') from e
        except cxxfilt.Error as e:
            # libstdc++ could not be loaded
            raise DemangleError(identifier, str(e)) from e
        if not with_params:
            text = text.partition('(')[0]
        return text


DEMANGLERS = {
    Gnu2Demangler.abi: Gnu2Demangler,
    ItaniumDemangler.abi: ItaniumDemangler,
}


def get_demangler(abi=DEFAULT_ABI):
    try:
        return DEMANGLERS[abi]()
    except KeyError:
        raise ValueError(f'Unknown ABI: {abi}') from None


def substitute_whole_word(text, old, new):
    """Replace every whole-word occurrence of old with new.

    This prevents a double replacement, for example uint32_t being
    converted to uint32_t32_t.
    """
    pos = text.find(old)
    while pos != -1:
        end = pos + len(old)
        previous = text[pos - 1] if pos > 0 else ''
        following = text[end] if end < len(text) else ''
        # The first character of old is checked for the replacements that
        # strip the leading space from the &, * and ** modifiers.
        preceded = old.startswith(' ') or (previous != '' and previous in WORD_PRECEDERS)
        terminated = following == '' or following in WORD_TERMINATORS
        if preceded and terminated:
            text = text[:pos] + new + text[end:]
            # Skip the replacement, new may contain old
            pos = text.find(old, pos + len(new))
        else:
            pos = text.find(old, pos + 1)
    return text


def normalize_signature(signature):
    """Rewrite built-in type spellings into fixed-width types."""
    for old, new in PARAMETER_SUBSTITUTIONS:
        signature = substitute_whole_word(signature, old, new)
    return signature


def demangle_symbol(identifier, demangler):
    signature = demangler.demangle(identifier, with_params=True, ansi=True)
    if not signature or not signature.strip():
        raise EmptySignatureError(identifier)
    return normalize_signature(signature)


def interface_name(class_name):
    """Return the public interface spelling of a class name.

    cRZLanguageManager -> cIGZLanguageManager, cSC3App -> cISC3App
    """
    if class_name.startswith('cRZ'):
        return 'cIGZ' + class_name[3:]
    if class_name.startswith('c'):
        return 'cI' + class_name[1:]
    return class_name


def find_qualifier(signature):
    """Index of the '::' that ends the class name, -1 for free functions."""
    params_start = signature.find('(')
    head = signature if params_start == -1 else signature[:params_start]
    # A conversion operator names its target type, which may be qualified
    operator = head.find('::operator')
    if operator != -1:
        return operator
    return head.rfind('::')


class AwaitingClassHeader:
    """No signature seen yet, the next one names the class."""


class EmittingMembers:
    def __init__(self, suppress_remaining=0):
        self.suppress_remaining = suppress_remaining


class InterfaceAssembler:
    """Builds the interface declaration one normalized signature at a time."""

    def __init__(self, base_interface=None, base_header=None):
        self.base_interface = base_interface or BASE_INTERFACE_NAME
        self.base_header = base_header or BASE_INTERFACE_HEADER
        self.state = AwaitingClassHeader()
        self.line_index = 0
        self.member_name_start = 0
        self.is_unknown_interface = False
        self.class_name = None
        self.member_count = 0
        self.lines = []
        self.finished = False

    def feed(self, signature):
        if self.finished:
            raise RuntimeError('The interface declaration is already finished')
        if isinstance(self.state, AwaitingClassHeader):
            self._start_class(signature)
        elif self.state.suppress_remaining > 0:
            # AddRef and Release are not written to the file
            self.state.suppress_remaining -= 1
        else:
            self._emit_member(signature)
        self.line_index += 1

    def finish(self):
        if not self.finished:
            self.lines.append('};')
            self.finished = True
        return self.lines

    def _start_class(self, signature):
        separator = find_qualifier(signature)
        if separator == -1:
            print(f'Warning: no class name in the first symbol: {signature}', file=sys.stderr)
            self.lines.extend(['class', '{', 'public:'])
            self.state = EmittingMembers()
            self._emit_member(signature)
            return

        # The class name is stripped from the start of every member
        self.member_name_start = separator + 2
        class_name = signature[:separator]
        self.is_unknown_interface = signature[self.member_name_start:] == UNKNOWN_INTERFACE_METHOD

        if self.is_unknown_interface:
            self.class_name = interface_name(class_name)
            self.lines.append(f'#include "{self.base_header}"')
            self.lines.append('')
            self.lines.append(f'class {self.class_name} : public {self.base_interface}')
            self.lines.extend(['{', 'public:'])
            # QueryInterface is not written to the file either
            self.state = EmittingMembers(suppress_remaining=UNKNOWN_INTERFACE_METHOD_COUNT - 1)
        else:
            self.class_name = class_name
            self.lines.append(f'class {class_name}')
            self.lines.extend(['{', 'public:'])
            self.state = EmittingMembers()
            self._emit_member(signature)

    def _emit_member(self, signature):
        self.lines.append(f'    virtual void* {signature[self.member_name_start:]} = 0;')
        self.member_count += 1


def assemble_interface(lines, demangler=None, format_version=DEFAULT_FORMAT_VERSION):
    """Run raw symbol lines through the pipeline, return the finished assembler."""
    demangler = demangler or get_demangler()
    assembler = InterfaceAssembler()
    for line in lines:
        identifier = classify_line(line, format_version)
        if identifier is None:
            continue
        assembler.feed(demangle_symbol(identifier, demangler))
    assembler.finish()
    return assembler


def write_output(destination, lines):
    """Write lines to destination through a temporary file in the same directory."""
    destination = Path(destination)
    fd, temp_name = tempfile.mkstemp(suffix='.txt', dir=destination.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write('\n'.join(lines) + '\n')
        if destination.exists():
            shutil.copymode(destination, temp_name)
        os.replace(temp_name, destination)
    except Exception:
        Path(temp_name).unlink(missing_ok=True)
        raise


def demangle_file(input_path, output_path=None, abi=DEFAULT_ABI, format_version=DEFAULT_FORMAT_VERSION):
    """Demangle input_path into output_path, or over input_path when omitted."""
    input_path = Path(input_path)
    destination = Path(output_path) if output_path else input_path
    demangler = get_demangler(abi)
    with open(input_path, 'r', encoding='utf-8') as f:
        assembler = assemble_interface(f, demangler, format_version)
    write_output(destination, assembler.lines)
    return assembler


def build_parser():
    parser = argparse.ArgumentParser(
        prog='sc3k-demangle',
        description='Convert mangled debug symbol names into a C++ interface declaration.',
        epilog='The output file is optional, when it is omitted the input file will be overwritten.',
    )
    parser.add_argument('input', type=Path, help='file with one mangled symbol per line')
    parser.add_argument('output', type=Path, nargs='?', help='file to write the declaration to')
    parser.add_argument('--abi', choices=sorted(DEMANGLERS), default=DEFAULT_ABI,
                        help=f'name mangling scheme of the symbols (default: {DEFAULT_ABI})')
    parser.add_argument('--format', dest='format_version', choices=FORMAT_VERSIONS,
                        default=DEFAULT_FORMAT_VERSION,
                        help=f'symbol list format (default: {DEFAULT_FORMAT_VERSION})')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    destination = args.output or args.input

    print(f'Demangling {args.input}...')
    try:
        assembler = demangle_file(args.input, args.output, abi=args.abi,
                                  format_version=args.format_version)
    except (SymbolTransformError, OSError, UnicodeDecodeError) as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    print(f'  Class:     {assembler.class_name or "<unnamed>"}')
    print(f'  Members:   {assembler.member_count}')
    print(f'\n Output:   {destination}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
