"""
Tests for the pre-execution gate.
"""

import pytest

from code_sandbox.execution.errors import (
    CodeTooLargeError,
    CodeValidationError,
    DangerousPatternError,
    EmptyCodeError,
    MemoryLimitTooHighError,
    TimeoutTooLargeError,
    ValidationCode,
)
from code_sandbox.execution.validation import RequestValidator


@pytest.fixture
def validator(settings):
    return RequestValidator(settings)


@pytest.mark.parametrize("source", ["", "   ", "\n\t\n"])
def test_empty_code_rejected(validator, make_request, source):
    with pytest.raises(EmptyCodeError) as exc_info:
        validator.validate(make_request(source))
    assert exc_info.value.code == ValidationCode.EMPTY_CODE


def test_code_at_limit_accepted(validator, make_request, settings):
    validator.validate(make_request("x" * settings.MAX_CODE_LENGTH))


def test_code_over_limit_rejected(validator, make_request, settings):
    with pytest.raises(CodeTooLargeError) as exc_info:
        validator.validate(make_request("x" * (settings.MAX_CODE_LENGTH + 1)))
    assert exc_info.value.code == ValidationCode.CODE_TOO_LARGE
    assert "10,000" in str(exc_info.value)


def test_timeout_ceiling(validator, make_request):
    validator.validate(make_request(timeout_ms=30_000))
    with pytest.raises(TimeoutTooLargeError) as exc_info:
        validator.validate(make_request(timeout_ms=30_001))
    assert exc_info.value.code == ValidationCode.TIMEOUT_TOO_LARGE


def test_memory_ceiling(validator, make_request):
    validator.validate(make_request(memory_limit_mb=512))
    with pytest.raises(MemoryLimitTooHighError) as exc_info:
        validator.validate(make_request(memory_limit_mb=513))
    assert exc_info.value.code == ValidationCode.MEMORY_LIMIT_TOO_HIGH


def test_size_checked_before_patterns(validator, make_request, settings):
    source = "import os\n" + "x" * settings.MAX_CODE_LENGTH
    with pytest.raises(CodeTooLargeError):
        validator.validate(make_request(source))


@pytest.mark.parametrize("language,source,risk_class", [
    ("javascript", "const fs = require('fs');", "filesystem"),
    ("javascript", 'const fs = require("node:fs/promises");', "filesystem"),
    ("typescript", "import { readFileSync } from 'fs';", "filesystem"),
    ("javascript", "require('child_process').execSync('ls')", "process"),
    ("javascript", "const net = require('net');", "network"),
    ("python", "import os\nprint(os.listdir('.'))", "process"),
    ("python", "import subprocess", "process"),
    ("python", "from os import path", "process"),
    ("python", "from subprocess import run", "process"),
    ("python", "import socket", "network"),
    ("java", "class Main { void f() { System.exit(1); } }", "termination"),
    ("c", "#include <unistd.h>\nint main() { return 0; }", "system_header"),
    ("cpp", "#include <cstdlib>\nint main() { return 0; }", "system_header"),
    ("c", "#include <sys/socket.h>", "system_header"),
])
def test_dangerous_patterns_rejected(validator, make_request, language, source, risk_class):
    with pytest.raises(DangerousPatternError) as exc_info:
        validator.validate(make_request(source, language=language))
    assert exc_info.value.code == ValidationCode.DANGEROUS_PATTERN
    assert exc_info.value.risk_class == risk_class
    assert "potentially dangerous" in str(exc_info.value)


@pytest.mark.parametrize("language,source", [
    ("python", "print('hello')"),
    ("python", "import math\nprint(math.pi)"),
    ("python", "import ossify"),
    ("python", "# we never import os here\nprint(1)"),
    ("javascript", "console.log('fs module is not used');"),
    ("javascript", "const x = a ? b : c;"),
    ("java", "public class Main { public static void main(String[] a) { System.out.println(1); } }"),
    ("c", "#include <stdio.h>\nint main() { printf(\"hi\"); return 0; }"),
    ("cpp", "#include <iostream>\nint main() { std::cout << 1; }"),
    ("go", "package main\nimport \"fmt\"\nfunc main() { fmt.Println(1) }"),
    ("rust", "fn main() { println!(\"hi\"); }"),
])
def test_benign_code_accepted(validator, make_request, language, source):
    validator.validate(make_request(source, language=language))


def test_all_rejections_share_base_class(validator, make_request):
    with pytest.raises(CodeValidationError):
        validator.validate(make_request(""))
