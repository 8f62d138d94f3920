
import sys
import os
import shutil
from tempfile import TemporaryDirectory
import pytest
# Ensure the project root is on sys.path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

XSD_FIXTURES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'xsd')

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with TemporaryDirectory() as dir_path:
        yield dir_path

@pytest.fixture
def xsd_root(temp_dir):
    """A private copy of tests/xsd, so tests may add or remove schema files."""
    root = os.path.join(temp_dir, 'xsd')
    shutil.copytree(XSD_FIXTURES, root)
    return root

@pytest.fixture
def write_xsd(temp_dir):
    """Write an XSD body (the children of xs:schema) to a file under temp_dir and return its path."""
    def _write(name, body, target_namespace="http://example.com/ns/1", extra_ns=""):
        path = os.path.join(temp_dir, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tns = f' xmlns:tns="{target_namespace}" targetNamespace="{target_namespace}"' if target_namespace else ''
        with open(path, 'w', encoding='utf-8') as f:
            f.write('<?xml version="1.0" encoding="UTF-8"?>\n'
                    '<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"'
                    f'{extra_ns}{tns}>\n{body}\n</xs:schema>\n')
        return path
    return _write
