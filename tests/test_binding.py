"""Tests for EdsdkBinding against a stand-in ``edsdk`` module.

The real extension only exists where Canon's EDSDK is installed, so these
tests swap a MagicMock into sys.modules, the same way hardware modules are
mocked elsewhere.
"""

from __future__ import annotations

import sys
from unittest.mock import MagicMock

import pytest

from edsdk_session.binding import EdsdkBinding
from edsdk_session.errors import InitializationError, NativeCallError


class FakeEdsError(Exception):
    def __init__(self, message: str, code: int) -> None:
        super().__init__(message)
        self.code = code


@pytest.fixture
def edsdk_module(monkeypatch) -> MagicMock:
    module = MagicMock()
    module.EdsError = FakeEdsError
    monkeypatch.setitem(sys.modules, "edsdk", module)
    return module


@pytest.fixture
def eds(edsdk_module) -> EdsdkBinding:
    return EdsdkBinding()


class TestImport:
    def test_missing_module_raises_initialization_error(self, monkeypatch) -> None:
        monkeypatch.setitem(sys.modules, "edsdk", None)
        with pytest.raises(InitializationError, match="edsdk-python"):
            EdsdkBinding()


class TestCalls:
    def test_eds_error_becomes_native_call_error(self, eds, edsdk_module) -> None:
        edsdk_module.OpenSession.side_effect = FakeEdsError("EDS_ERR_DEVICE_BUSY", 0x81)
        with pytest.raises(NativeCallError) as exc_info:
            eds.open_session(object())
        assert exc_info.value.code == 0x81
        assert exc_info.value.call == "OpenSession"

    def test_device_info(self, eds, edsdk_module) -> None:
        edsdk_module.GetDeviceInfo.return_value = {
            "szPortName": "usb:001,004",
            "szDeviceDescription": "Canon EOS R6",
            "deviceSubType": 2,
            "reserved": 0,
        }
        info = eds.device_info(object())
        assert (info.port_name, info.description, info.sub_type) == ("usb:001,004", "Canon EOS R6", 2)

    def test_item_info(self, eds, edsdk_module) -> None:
        edsdk_module.GetDirectoryItemInfo.return_value = {
            "size": 12345,
            "isFolder": False,
            "szFileName": "IMG_0001.JPG",
            "dateTime": 1700000000,
        }
        info = eds.item_info(object())
        assert (info.size, info.filename, info.timestamp) == (12345, "IMG_0001.JPG", 1700000000)

    def test_property_size(self, eds, edsdk_module) -> None:
        edsdk_module.GetPropertySize.return_value = (3, 4)
        assert eds.get_property_size(object(), 0x0B) == 4

    def test_capacity_hint(self, eds, edsdk_module) -> None:
        cam = object()
        eds.set_capacity_hint(cam, 0x7FFFFFFF, 0x1000)
        edsdk_module.SetCapacity.assert_called_once_with(
            cam, {"reset": True, "bytesPerSector": 0x1000, "numberOfFreeClusters": 0x7FFFFFFF}
        )

    def test_pump_calls_get_event(self, eds, edsdk_module) -> None:
        eds.pump_events()
        edsdk_module.GetEvent.assert_called_once_with()

    def test_unregister_passes_callable(self, eds, edsdk_module) -> None:
        cam = object()
        eds.set_object_event_handler(cam, 0x200, None)
        _cam, mask, handler = edsdk_module.SetObjectEventHandler.call_args[0]
        assert mask == 0x200
        assert handler(0x208, object()) == 0


class TestRetainRelease:
    def test_pins_object_until_released(self, eds) -> None:
        ref = object()
        eds.retain(ref)
        eds.retain(ref)
        eds.release(ref)
        assert eds._pinned[id(ref)] == [ref]
        eds.release(ref)
        assert id(ref) not in eds._pinned

    def test_release_unpinned_is_noop(self, eds) -> None:
        eds.release(object())
        assert eds._pinned == {}


class TestMessagePump:
    def test_no_pythoncom_pumps_from_any_thread(self, monkeypatch, edsdk_module) -> None:
        monkeypatch.setattr("edsdk_session.binding.pythoncom", None)
        assert EdsdkBinding().pumps_on_init_thread is False

    def test_pythoncom_pins_pumping_to_init_thread(self, monkeypatch, edsdk_module) -> None:
        pythoncom = MagicMock()
        monkeypatch.setattr("edsdk_session.binding.pythoncom", pythoncom)
        eds = EdsdkBinding()

        eds.pump_events()

        assert eds.pumps_on_init_thread is True
        pythoncom.PumpWaitingMessages.assert_called_once_with()
        edsdk_module.GetEvent.assert_called_once_with()
