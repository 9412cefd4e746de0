import os

# Must be set before config.settings is imported anywhere.
os.environ.setdefault("APP_ENV", "test")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import io
import stat
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from core.log_broker import log_broker
from main import app


class RecordingChannel:
    """Stands in for a WebSocket-backed LogChannel."""

    def __init__(self) -> None:
        self.messages: List[str] = []
        self.open = True

    @property
    def is_open(self) -> bool:
        return self.open

    def offer(self, message: str) -> bool:
        self.messages.append(message)
        return True

    def has(self, fragment: str) -> bool:
        return any(fragment in m for m in self.messages)


def build_zip(entries: Dict[str, Optional[Union[str, bytes]]]) -> bytes:
    """None marks a directory entry (name must end with '/')."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            if data is None:
                zf.writestr(zipfile.ZipInfo(name), b"")
            else:
                zf.writestr(name, data)
    return buf.getvalue()


MINIMAL_PROJECT = {
    "proj/": None,
    "proj/Nargo.toml": '[package]\nname = "proj"\ntype = "bin"\n',
    "proj/src/": None,
    "proj/src/main.nr": "fn main(x: Field) { assert(x != 0); }\n",
}

PROJECT_WITH_INPUTS = {
    **MINIMAL_PROJECT,
    "proj/Prover.toml": 'x = "1"\n',
}

_NARGO = r"""#!/bin/sh
echo "nargo $*" >> "__CALLS__"
case "$1" in
  compile)
    mkdir -p target
    printf '{"noir_version":"1.0.0","abi":{}}' > target/proj.json
    ;;
  check)
    [ -f Prover.toml ] || printf 'x = ""\n' > Prover.toml
    ;;
  execute)
    mkdir -p target
    printf '{"noir_version":"1.0.0","abi":{}}' > target/proj.json
    printf 'witness' > target/proj.gz
    ;;
esac
echo "nargo $1 ok"
"""

_BB = r"""#!/bin/sh
echo "bb $*" >> "__CALLS__"
case "$1" in
  prove) printf 'PROOF\001\002' > target/proof ;;
  write_vk) printf 'VK\003' > target/vk ;;
  write_solidity_verifier) printf 'contract HonkVerifier {}\n' > "$5" ;;
esac
echo "bb $1 ok"
"""

_GARAGA = r"""#!/bin/sh
echo "garaga $*" >> "__CALLS__"
mkdir -p verifier/src
printf 'mod honk_verifier;\n' > verifier/src/lib.cairo
printf 'fn verify() {}\n' > verifier/src/honk_verifier.cairo
"""

_PROFILER = r"""#!/bin/sh
echo "noir-profiler $1" >> "__CALLS__"
out=""
while [ $# -gt 0 ]; do
  if [ "$1" = "--output" ]; then out="$2"; fi
  shift
done
mkdir -p "$out"
printf '<svg/>' > "$out/main_flamegraph.svg"
"""

_FAILING = r"""#!/bin/sh
echo "__NAME__ $*" >> "__CALLS__"
echo "__STDERR__" >&2
exit __CODE__
"""


class FakeToolchain:
    """Executable shell scripts standing in for nargo / bb / garaga / noir-profiler."""

    SETTINGS = {
        "nargo": "NARGO_BIN",
        "bb": "BB_BIN",
        "garaga": "GARAGA_BIN",
        "noir-profiler": "PROFILER_BIN",
    }

    def __init__(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.bin = root / "bin"
        self.bin.mkdir()
        self.calls_file = root / "calls.log"
        self.calls_file.touch()
        self._monkeypatch = monkeypatch
        self.write("nargo", _NARGO)
        self.write("bb", _BB)
        self.write("garaga", _GARAGA)
        self.write("noir-profiler", _PROFILER)

    def write(self, name: str, body: str) -> Path:
        path = self.bin / name
        path.write_text(body.replace("__CALLS__", str(self.calls_file)))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self._monkeypatch.setattr(settings, self.SETTINGS[name], str(path))
        return path

    def fail(self, name: str, code: int = 1, stderr: str = "error: boom") -> None:
        body = (
            _FAILING.replace("__NAME__", name)
            .replace("__STDERR__", stderr)
            .replace("__CODE__", str(code))
        )
        self.write(name, body)

    def calls(self) -> List[str]:
        return [line for line in self.calls_file.read_text().splitlines() if line]


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    uploads = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_ROOT", str(uploads))
    monkeypatch.setattr(settings, "RETAIN_WORKSPACES", False)
    monkeypatch.setattr(settings, "DISCONNECT_POLL_SECONDS", 0.05)
    monkeypatch.setattr(settings, "STAGE_TIMEOUT_SECONDS", 30.0)
    return uploads


@pytest.fixture
def uploads(isolated_settings) -> Path:
    return isolated_settings


@pytest.fixture
def toolchain(tmp_path, monkeypatch) -> FakeToolchain:
    return FakeToolchain(tmp_path, monkeypatch)


@pytest.fixture
def zip_bytes():
    return build_zip


@pytest.fixture
def live_log():
    """Bind RecordingChannels to the shared broker; unbound again after the test."""
    created: List[RecordingChannel] = []

    def _bind(request_id: str) -> RecordingChannel:
        channel = RecordingChannel()
        log_broker.bind(request_id, channel)
        created.append(channel)
        return channel

    yield _bind
    for channel in created:
        log_broker.unbind(channel)


@pytest.fixture
def make_channel():
    return RecordingChannel


@pytest.fixture
def minimal_project() -> Dict[str, Optional[str]]:
    return dict(MINIMAL_PROJECT)


@pytest.fixture
def project_with_inputs() -> Dict[str, Optional[str]]:
    return dict(PROJECT_WITH_INPUTS)


@pytest.fixture
def client(isolated_settings):
    with TestClient(app) as c:
        yield c
