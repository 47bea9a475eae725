import pytest
from pyvisa import VisaIOError
from pyvisa.constants import StatusCode

from vna_sweep_control.vna_keysight_pna import VNA, OperationTimeoutError


def test_polls_until_plus_one(fake_visa, sleeps):
    res = fake_visa(replies={"*OPC?": ["+0\n", "+0\n", "+1\n"]})
    vna = VNA()
    status = vna.wait_for_operation_complete(poll_interval_s=1.0)
    assert status >= 0
    assert res.writes == ["*OPC?"] * 3
    assert sleeps == [1.0, 1.0]


def test_read_errors_do_not_stop_polling(fake_visa, sleeps, caplog):
    fake_visa(replies={"*OPC?": [VisaIOError(StatusCode.error_timeout),
                                 VisaIOError(StatusCode.error_timeout),
                                 "+1\n"]})
    vna = VNA()
    vna.wait_for_operation_complete()
    assert len(sleeps) == 2
    assert caplog.text.count("Error reading response.") == 2


def test_write_error_on_opc_still_reads(fake_visa, sleeps):
    res = fake_visa(replies={"*OPC?": ["+1\n"]}, write_errors={"*OPC?"})
    vna = VNA()
    vna.wait_for_operation_complete()
    assert res.writes == ["*OPC?"]
    assert sleeps == []


def test_bare_one_is_not_the_success_marker(fake_visa, sleeps):
    fake_visa(replies={"*OPC?": ["1\n", "1\n", "1\n"]})
    vna = VNA()
    with pytest.raises(OperationTimeoutError):
        vna.wait_for_operation_complete(max_attempts=3)
    assert len(sleeps) == 2


def test_custom_success_token(fake_visa):
    fake_visa(replies={"*OPC?": ["1\n"]})
    vna = VNA()
    vna.wait_for_operation_complete(success_token="1", max_attempts=1)
