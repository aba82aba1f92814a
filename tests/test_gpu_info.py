import pytest

from migmanager.errors import InvalidHardwareId, MalformedInventory
from migmanager.gpu_info import MigGpu, MigState, get_gpu_state, parse_gpu_info
from migmanager.gpu_model import GpuFamily


@pytest.mark.parametrize("current, pending, expected", [
    ("Enabled", "Enabled", MigState.ENABLED),
    ("Disabled", "Disabled", MigState.DISABLED),
    ("[N/A]", "[N/A]", MigState.UNSUPPORTED),
    ("Enabled", "Disabled", MigState.TRANSITION),
    ("Disabled", "Enabled", MigState.TRANSITION),
    ("[N/A]", "Enabled", MigState.TRANSITION),
    ("X", "X", MigState.UNKNOWN),
    ("enabled", "enabled", MigState.UNKNOWN),
])
def test_get_gpu_state(current, pending, expected):
    assert get_gpu_state(current, pending) is expected


def test_parse_gpu_info():
    output = (
        "0x20B010DE, Disabled, Disabled\n"
        "0x20B010DE, Enabled, Disabled\n"
        "0x20B010DE, Enabled, Enabled\n"
    )
    assert parse_gpu_info(output) == [
        MigGpu(GpuFamily.A100_40GB, MigState.DISABLED),
        MigGpu(GpuFamily.A100_40GB, MigState.TRANSITION),
        MigGpu(GpuFamily.A100_40GB, MigState.ENABLED),
    ]


def test_parse_gpu_info_unsupported_and_unknown_gpu():
    output = "0x1EB810DE, [N/A], [N/A]\n0x233010DE, Pending, Pending\n"
    assert parse_gpu_info(output) == [
        MigGpu(GpuFamily.OTHER, MigState.UNSUPPORTED),
        MigGpu(GpuFamily.H100_80GB, MigState.UNKNOWN),
    ]


def test_parse_gpu_info_skips_blank_lines():
    assert parse_gpu_info("\n0x233010DE, Enabled, Enabled\n\n") == [
        MigGpu(GpuFamily.H100_80GB, MigState.ENABLED),
    ]


def test_parse_gpu_info_empty():
    assert parse_gpu_info("") == []


@pytest.mark.parametrize("row", [
    "0x20B010DE, Disabled",
    "0x20B010DE,Disabled,Disabled",
    "0x20B010DE, Disabled, Disabled, extra",
])
def test_malformed_row(row):
    with pytest.raises(MalformedInventory):
        parse_gpu_info(row)


def test_non_nvidia_row():
    with pytest.raises(InvalidHardwareId):
        parse_gpu_info("0x20B01002, Disabled, Disabled")


def test_mig_gpu_helpers():
    gpu = MigGpu(GpuFamily.H100_80GB, MigState.DISABLED)
    assert gpu.is_disabled()
    assert not gpu.is_enabled()
    assert not gpu.is_unsupported()
