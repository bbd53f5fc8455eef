import re

import pytest

import growctl

LINE_RE = re.compile(r"^[A-Z0-9]{36}$")


@pytest.fixture(autouse=True)
def no_config_file(tmp_path, monkeypatch):
    """Point growctl at a config path that does not exist."""
    monkeypatch.setenv(growctl.CONFIG_ENV, str(tmp_path / "missing-growctl.json"))


def read_lines(path):
    data = path.read_bytes()
    assert data.endswith(b"\n")
    return data.decode("ascii").split("\n")[:-1]


def assert_valid_lines(path):
    lines = read_lines(path)
    assert lines
    bad = [line for line in lines if not LINE_RE.match(line)]
    assert bad == []
    return lines
