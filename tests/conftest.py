import pytest
import pyvisa
from pyvisa import VisaIOError
from pyvisa.constants import StatusCode

from vna_sweep_control import vna_keysight_pna


class FakeResource:
    """Records every write and answers reads from per-command scripted replies."""

    def __init__(self, replies=None, write_errors=()):
        self.replies = {cmd: list(r) for cmd, r in (replies or {}).items()}
        self.write_errors = set(write_errors)
        self.writes = []
        self.flushes = []
        self.read_sizes = []
        self.last_status = StatusCode.success
        self.timeout = None
        self.read_termination = None
        self.write_termination = None
        self.closed = False
        self._pending = None

    def write(self, cmd):
        self.writes.append(cmd)
        self._pending = cmd
        if cmd in self.write_errors:
            raise VisaIOError(StatusCode.error_connection_lost)
        self.last_status = StatusCode.success
        return len(cmd) + 1

    def flush(self, mask):
        self.flushes.append(mask)

    def read_bytes(self, count, break_on_termchar=False):
        self.read_sizes.append(count)
        queue = self.replies.get(self._pending)
        if not queue:
            raise VisaIOError(StatusCode.error_timeout)
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        data = reply.encode("ascii")
        if break_on_termchar and b"\n" in data:
            data = data[:data.index(b"\n") + 1]
        return data[:count]

    def close(self):
        self.closed = True


class FakeResourceManager:
    def __init__(self, resource, fail_open=False):
        self.resource = resource
        self.fail_open = fail_open
        self.opened = []
        self.closed = False

    def open_resource(self, name):
        self.opened.append(name)
        if self.fail_open:
            raise VisaIOError(StatusCode.error_resource_not_found)
        return self.resource

    def close(self):
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(vna_keysight_pna.time, "sleep", calls.append)
    return calls


@pytest.fixture
def fake_visa(monkeypatch, sleeps):
    """Install a fake resource manager; returns a function to script the resource."""
    state = {}

    def install(replies=None, write_errors=(), fail_open=False):
        resource = FakeResource(replies, write_errors)
        rm = FakeResourceManager(resource, fail_open=fail_open)
        state["rm"] = rm
        monkeypatch.setattr(pyvisa, "ResourceManager", lambda *args: rm)
        return resource

    install.state = state
    return install


def scan_replies(opc=("+1\n",), data="+1.0E+00,-2.5E+00,+3.0E+00\n"):
    return {
        "*OPC?": list(opc),
        "CALCulate1:MEASure1:DATA? FDATA": [data],
        "SENSe1:FREQuency:STARt?": ["+5.00000000000E+008\n"],
        "SENSe1:FREQuency:STOP?": ["+3.00000000000E+009\n"],
        "SENSe1:SWEep:POINts?": ["+501\n"],
        "SENSe1:BANDwidth:RESolution?": ["+3.00000000000E+002\n"],
        "SYST:ERR?": ['+0,"No error"\n'],
    }
