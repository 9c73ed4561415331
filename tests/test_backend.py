from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pulsectl
import pytest

from backend import PulseBackend
from controller import device_from_sink_name
from errors import CommandFailed, ServerUnavailable, StaleReference
from models import DUPLEX, INPUT, OUTPUT, STEREO

ADDR = "00_1B_66_AA_BB_CC"


def stream(index, app, mute=0):
    return SimpleNamespace(index=index, mute=mute, proplist={"application.name": app})


@pytest.fixture
def pulse():
    return MagicMock()


@pytest.fixture
def backend(pulse):
    with patch("backend.pulsectl.Pulse", return_value=pulse):
        b = PulseBackend()
        b._pulse_connect()
    return b


class TestDeviceNames:
    def test_pulseaudio_sink(self):
        d = device_from_sink_name(f"bluez_sink.{ADDR}.a2dp_sink")
        assert d.address == ADDR
        assert d.profile == "a2dp_sink"
        assert d.card == f"bluez_card.{ADDR}"
        assert d.sink_name("headset_head_unit") == f"bluez_sink.{ADDR}.headset_head_unit"
        assert d.source_name("headset_head_unit") == f"bluez_source.{ADDR}.headset_head_unit"

    def test_pipewire_sink(self):
        assert device_from_sink_name(f"bluez_output.{ADDR}.1").address == ADDR

    def test_not_bluetooth(self):
        assert device_from_sink_name("alsa_output.pci-0000_00_1f.3.analog-stereo") is None
        assert device_from_sink_name(None) is None


class TestPulseBackend:
    def test_connection_failure(self):
        with patch("backend.pulsectl.Pulse", side_effect=pulsectl.PulseError("refused")):
            with pytest.raises(ServerUnavailable):
                PulseBackend().get_active_device()

    def test_active_device(self, backend, pulse):
        pulse.server_info.return_value = SimpleNamespace(default_sink_name=f"bluez_sink.{ADDR}.a2dp_sink")
        d = backend.get_active_device()
        assert d.output == f"bluez_sink.{ADDR}.a2dp_sink"

    def test_current_mode(self, backend, pulse):
        d = device_from_sink_name(f"bluez_sink.{ADDR}.a2dp_sink")
        pulse.get_card_by_name.return_value = SimpleNamespace(profile_active=SimpleNamespace(name="headset_head_unit"))
        assert backend.get_current_mode(d) == DUPLEX
        pulse.get_card_by_name.assert_called_with(f"bluez_card.{ADDR}")
        pulse.get_card_by_name.return_value = SimpleNamespace(profile_active=SimpleNamespace(name="a2dp_sink"))
        assert backend.get_current_mode(d) == STEREO
        pulse.get_card_by_name.return_value = SimpleNamespace(profile_active=SimpleNamespace(name="off"))
        assert backend.get_current_mode(d) is None

    def test_output_volume_is_percent(self, backend, pulse):
        pulse.volume_get_all_chans.return_value = 0.456
        assert backend.get_output_volume("sink") == 46
        backend.set_output_volume("sink", 30)
        pulse.volume_set_all_chans.assert_called_with(pulse.get_sink_by_name.return_value, 0.3)

    def test_pulse_error_becomes_command_failed(self, backend, pulse):
        pulse.get_sink_by_name.side_effect = pulsectl.PulseError("sink")
        with pytest.raises(CommandFailed) as e:
            backend.get_output_volume("broken")
        assert not isinstance(e.value, StaleReference)

    def test_missing_object_is_a_stale_reference(self, backend, pulse):
        pulse.sink_input_move.side_effect = pulsectl.PulseIndexError(5)
        pulse.get_sink_by_name.return_value = SimpleNamespace(index=3)
        with pytest.raises(StaleReference):
            backend.move_stream(OUTPUT, 5, "s")

    def test_disconnect_reconnects_next_time(self, backend, pulse):
        pulse.server_info.side_effect = pulsectl.PulseDisconnected()
        with pytest.raises(ServerUnavailable):
            backend.get_active_device()
        assert backend._pulse is None

    def test_set_profile(self, backend, pulse):
        d = device_from_sink_name(f"bluez_sink.{ADDR}.a2dp_sink")
        backend.set_profile(d, DUPLEX)
        pulse.card_profile_set.assert_called_with(pulse.get_card_by_name.return_value, "headset_head_unit")

    def test_defaults_and_moves(self, backend, pulse):
        pulse.get_sink_by_name.return_value = SimpleNamespace(index=3)
        pulse.get_source_by_name.return_value = SimpleNamespace(index=4)
        backend.set_default_output("s")
        pulse.default_set.assert_called_with(pulse.get_sink_by_name.return_value)
        backend.set_default_input("src")
        pulse.default_set.assert_called_with(pulse.get_source_by_name.return_value)
        backend.move_stream(OUTPUT, 5, "s")
        pulse.sink_input_move.assert_called_with(5, 3)
        backend.move_stream(INPUT, 7, "src")
        pulse.source_output_move.assert_called_with(7, 4)

    def test_mute(self, backend, pulse):
        backend.set_mute(10, True)
        pulse.sink_input_mute.assert_called_with(10, True)

    def test_unmuted_outputs(self, backend, pulse):
        pulse.sink_input_list.return_value = [
            stream(5, "Skype"),
            stream(10, "Spotify"),
            stream(11, "Firefox"),
            stream(12, "mpv", mute=1),
        ]
        with patch("backend.start_corked_sink_inputs", return_value={10, 12}):
            got = backend.list_unmuted_output_streams(excluding=[5])
        assert [(s.index, s.application_name, s.resumable) for s in got] == [
            (10, "Spotify", True),
            (11, "Firefox", False),
        ]

    def test_no_pacmd_means_nothing_resumable(self, backend, pulse):
        pulse.sink_input_list.return_value = [stream(10, "Spotify")]
        with patch("backend.start_corked_sink_inputs", side_effect=CommandFailed("no pacmd")):
            got = backend.list_unmuted_output_streams()
        assert [s.resumable for s in got] == [False]

    def test_enumerate_live_streams(self, backend, pulse):
        pulse.source_output_list.return_value = [stream(7, "Skype")]
        got = backend.enumerate_live_streams(INPUT)
        assert [(s.index, s.application_name) for s in got] == [(7, "Skype")]

    def test_application_name_lookup_retries(self, backend, pulse, monkeypatch):
        monkeypatch.setattr(PulseBackend, "LOOKUP_DELAY", 0)
        pulse.sink_input_info.side_effect = [pulsectl.PulseIndexError(5), stream(5, "Skype")]
        assert backend.stream_application_name(OUTPUT, 5) == "Skype"
        assert pulse.sink_input_info.call_count == 2

    def test_application_name_lookup_gives_up(self, backend, pulse, monkeypatch):
        monkeypatch.setattr(PulseBackend, "LOOKUP_DELAY", 0)
        pulse.source_output_info.side_effect = pulsectl.PulseIndexError(7)
        assert backend.stream_application_name(INPUT, 7) is None
        assert pulse.source_output_info.call_count == PulseBackend.LOOKUP_ATTEMPTS
