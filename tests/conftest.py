"""Pytest configuration and fixtures for sc3k_demangle tests"""

import pytest
import tempfile
import shutil
from pathlib import Path
import sys

# Add src to path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


class StubDemangler:
    """Demangler returning canned signatures, raising for unknown names"""
    abi = 'stub'

    def __init__(self, signatures):
        self.signatures = signatures
        self.calls = []

    def demangle(self, identifier, with_params=True, ansi=True):
        import sc3k_demangle
        self.calls.append(identifier)
        if identifier not in self.signatures:
            raise sc3k_demangle.DemangleError(identifier, 'unknown stub symbol')
        return self.signatures[identifier]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing"""
    temp = tempfile.mkdtemp()
    yield Path(temp)
    shutil.rmtree(temp, ignore_errors=True)


@pytest.fixture
def stub_demangler():
    """Factory for demanglers backed by a name -> signature dict"""
    return StubDemangler


@pytest.fixture
def sc3_app_symbols():
    """Mangled vtable symbols of an unknown-interface class"""
    return [
        'QueryInterface__7cSC3AppUlPPv',
        'AddRef__7cSC3App',
        'Release__7cSC3App',
        'Init__7cSC3App',
        '__thunk_4_Shutdown__7cSC3Appb',
        'virtual bool GetName__C7cSC3AppPc(char *)',
    ]


@pytest.fixture
def symbols_file(temp_dir):
    """Write symbol lines to a file and return its path"""
    def _write(lines, name='symbols.txt'):
        path = temp_dir / name
        path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
        return path
    return _write
