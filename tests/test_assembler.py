#!/usr/bin/env python3
"""Tests for the interface declaration state machine"""

import pytest

import sc3k_demangle
from sc3k_demangle import InterfaceAssembler, interface_name, find_qualifier


class TestInterfaceName:
    """Test the public interface spelling of class names"""

    def test_rz_prefix(self):
        assert interface_name('cRZLanguageManager') == 'cIGZLanguageManager'
        assert interface_name('cRZ') == 'cIGZ'

    def test_c_prefix(self):
        assert interface_name('cSC3App') == 'cISC3App'
        assert interface_name('cRoad') == 'cIRoad'

    def test_other_names_unchanged(self):
        assert interface_name('SC3App') == 'SC3App'


class TestFindQualifier:

    def test_member(self):
        assert find_qualifier('cSC3App::Init(void)') == len('cSC3App')

    def test_nested_class(self):
        assert find_qualifier('cOuter::cInner::Run(int32_t)') == len('cOuter::cInner')

    def test_qualified_parameter_is_ignored(self):
        assert find_qualifier('Run(cOuter::cInner&)') == -1

    def test_free_function(self):
        assert find_qualifier('DoThing(int32_t)') == -1

    def test_conversion_to_qualified_type(self):
        assert find_qualifier('cFoo::operator cBar::Baz*(void)') == len('cFoo')
        assert find_qualifier('cOuter::cInner::operator cBar::Baz*(void) const') == len('cOuter::cInner')

    def test_call_operator(self):
        assert find_qualifier('cFoo::operator()(int32_t)') == len('cFoo')

    def test_conversion_operator_class_header(self):
        assembler = InterfaceAssembler()
        assembler.feed('cFoo::operator cBar::Baz*(void)')
        assembler.feed('cFoo::Run(void)')
        assert assembler.finish() == [
            'class cFoo',
            '{',
            'public:',
            '    virtual void* operator cBar::Baz*(void) = 0;',
            '    virtual void* Run(void) = 0;',
            '};',
        ]


class TestUnknownInterfaceClass:
    """A class whose first member is QueryInterface"""

    def feed_all(self, signatures):
        assembler = InterfaceAssembler()
        for signature in signatures:
            assembler.feed(signature)
        return assembler

    def test_header_and_suppressed_members(self):
        assembler = self.feed_all([
            'cSC3App::QueryInterface(uint32_t, void**)',
            'cSC3App::AddRef(void)',
            'cSC3App::Release(void)',
            'cSC3App::Init(void)',
            'cSC3App::GetName(int8_t*) const',
        ])
        lines = assembler.finish()
        assert lines == [
            '#include "cIGZUnknown.h"',
            '',
            'class cISC3App : public cIGZUnknown',
            '{',
            'public:',
            '    virtual void* Init(void) = 0;',
            '    virtual void* GetName(int8_t*) const = 0;',
            '};',
        ]
        assert assembler.is_unknown_interface is True
        assert assembler.class_name == 'cISC3App'
        assert assembler.member_count == 2
        assert assembler.line_index == 5

    def test_rz_class_becomes_igz_interface(self):
        assembler = self.feed_all(['cRZLanguageManager::QueryInterface(uint32_t, void**)'])
        assert 'class cIGZLanguageManager : public cIGZUnknown' in assembler.finish()

    def test_exactly_three_lines_suppressed(self):
        assembler = self.feed_all([
            'cFoo::QueryInterface(uint32_t, void**)',
            'cFoo::First(void)',
            'cFoo::Second(void)',
            'cFoo::Third(void)',
            'cFoo::Fourth(void)',
        ])
        members = [line for line in assembler.finish() if line.startswith('    virtual')]
        assert members == [
            '    virtual void* Third(void) = 0;',
            '    virtual void* Fourth(void) = 0;',
        ]

    def test_query_interface_with_other_parameters_is_plain(self):
        assembler = self.feed_all(['cFoo::QueryInterface(uint32_t)'])
        assert assembler.is_unknown_interface is False
        assert assembler.finish()[0] == 'class cFoo'

    def test_patched_base_interface(self, monkeypatch):
        monkeypatch.setattr(sc3k_demangle, 'BASE_INTERFACE_NAME', 'cIUnknown')
        monkeypatch.setattr(sc3k_demangle, 'BASE_INTERFACE_HEADER', 'Unknown.h')
        assembler = self.feed_all(['cFoo::QueryInterface(uint32_t, void**)'])
        lines = assembler.finish()
        assert lines[0] == '#include "Unknown.h"'
        assert lines[2] == 'class cIFoo : public cIUnknown'


class TestPlainClass:
    """A class without the unknown-interface methods"""

    def test_first_line_is_a_member(self):
        assembler = InterfaceAssembler()
        assembler.feed('cRoad::GetLength(void) const')
        assembler.feed('cRoad::SetLength(int32_t)')
        assembler.feed('cRoad::Connect(cRoad&)')
        assert assembler.finish() == [
            'class cRoad',
            '{',
            'public:',
            '    virtual void* GetLength(void) const = 0;',
            '    virtual void* SetLength(int32_t) = 0;',
            '    virtual void* Connect(cRoad&) = 0;',
            '};',
        ]
        assert assembler.is_unknown_interface is False
        assert assembler.member_count == 3

    def test_second_and_third_lines_are_kept(self):
        assembler = InterfaceAssembler()
        for name in ('A', 'B', 'C'):
            assembler.feed(f'cFoo::{name}(void)')
        assert assembler.member_count == 3

    def test_member_name_offset_is_fixed_by_first_line(self):
        assembler = InterfaceAssembler()
        assembler.feed('cFoo::A(void)')
        assembler.feed('cBar::B(void)')
        assert assembler.member_name_start == len('cFoo::')
        assert '    virtual void* B(void) = 0;' in assembler.finish()


class TestDegenerateInput:

    def test_unqualified_first_line(self, capsys):
        assembler = InterfaceAssembler()
        assembler.feed('DoThing(int32_t)')
        assert assembler.finish() == [
            'class',
            '{',
            'public:',
            '    virtual void* DoThing(int32_t) = 0;',
            '};',
        ]
        assert assembler.member_name_start == 0
        assert 'no class name' in capsys.readouterr().err

    def test_no_input(self):
        assembler = InterfaceAssembler()
        assert assembler.finish() == ['};']
        assert assembler.class_name is None

    def test_feed_after_finish(self):
        assembler = InterfaceAssembler()
        assembler.feed('cFoo::A(void)')
        assembler.finish()
        with pytest.raises(RuntimeError):
            assembler.feed('cFoo::B(void)')

    def test_finish_twice_appends_one_brace(self):
        assembler = InterfaceAssembler()
        assembler.finish()
        assert assembler.finish() == ['};']
