"""Tests for the SCORM run-time data store and its call surfaces."""

import pytest

from scorm_player.services.runtime_api import (
    ERROR_MESSAGES,
    READ_ONLY_ELEMENTS,
    LocalRuntimeDataStore,
    SessionState,
    UnknownApiCallError,
    create_scorm_api,
    sanitize_value,
    validate_element,
)


@pytest.fixture
def store():
    return LocalRuntimeDataStore()


@pytest.fixture
def active_store(store):
    assert store.initialize() is True
    return store


class TestLifecycle:
    def test_initialize_activates(self, store):
        assert store.state == SessionState.UNINITIALIZED
        assert store.initialize() is True
        assert store.state == SessionState.ACTIVE
        assert store.get_last_error() == "0"

    def test_double_initialize_fails_and_stays_active(self, active_store):
        assert active_store.initialize() is False
        assert active_store.get_last_error() == "101"
        assert active_store.state == SessionState.ACTIVE

    def test_terminate_before_initialize(self, store):
        assert store.terminate() is False
        assert store.get_last_error() == "112"
        assert store.state == SessionState.UNINITIALIZED

    def test_terminated_is_final(self, active_store):
        assert active_store.terminate() is True
        assert active_store.state == SessionState.TERMINATED
        assert active_store.terminate() is False
        assert active_store.get_last_error() == "112"
        assert active_store.initialize() is False
        assert active_store.state == SessionState.TERMINATED

    @pytest.mark.parametrize("when", ["before", "after"])
    def test_calls_outside_active_state(self, store, when):
        if when == "after":
            store.initialize()
            store.terminate()

        assert store.get_value("cmi.core.lesson_status") == ""
        assert store.get_last_error() == "112"
        assert store.set_value("cmi.core.lesson_location", "p1") is False
        assert store.get_last_error() == "112"
        assert store.commit() is False
        assert store.get_last_error() == "112"


class TestGetSetValue:
    def test_defaults(self, active_store):
        assert active_store.get_value("cmi.core.lesson_status") == "not attempted"
        assert active_store.get_value("cmi.core.student_id") == "student_001"
        assert active_store.get_value("cmi.core.entry") == "ab-initio"

    def test_unknown_element_reads_empty(self, active_store):
        active_store.set_value("cmi.core.lesson_status", "bogus")
        assert active_store.get_value("cmi.interactions.0.id") == ""
        assert active_store.get_last_error() == "0"

    def test_set_then_get(self, active_store):
        assert active_store.set_value("cmi.core.lesson_location", "page-3") is True
        assert active_store.get_last_error() == "0"
        assert active_store.get_value("cmi.core.lesson_location") == "page-3"

    @pytest.mark.parametrize("element", sorted(READ_ONLY_ELEMENTS))
    def test_read_only_elements(self, active_store, element):
        before = active_store.get_value(element)
        assert active_store.set_value(element, "x") is False
        assert active_store.get_last_error() == "403"
        assert active_store.get_value(element) == before

    @pytest.mark.parametrize(
        "element,value",
        [
            ("cmi.core.lesson_status", "done"),
            ("cmi.core.exit", "quit"),
            ("cmi.core.score.raw", "abc"),
            ("cmi.core.score.raw", "12345678901"),
            ("cmi.core.score.max", "1.2.3"),
            ("cmi.core.session_time", "1:00:00"),
            ("cmi.core.session_time", "00:00:00.123"),
            ("cmi.suspend_data", "x" * 4097),
        ],
    )
    def test_invalid_data_leaves_value_unchanged(self, active_store, element, value):
        before = active_store.get_value(element)
        assert active_store.set_value(element, value) is False
        assert active_store.get_last_error() == "405"
        assert active_store.get_value(element) == before

    @pytest.mark.parametrize(
        "element,value",
        [
            ("cmi.core.lesson_status", "passed"),
            ("cmi.core.lesson_status", "not attempted"),
            ("cmi.core.exit", ""),
            ("cmi.core.exit", "suspend"),
            ("cmi.core.score.raw", "-12.5"),
            ("cmi.core.score.min", "0"),
            ("cmi.core.session_time", "0001:02:03.45"),
            ("cmi.suspend_data", "x" * 4096),
        ],
    )
    def test_valid_data_accepted(self, active_store, element, value):
        assert active_store.set_value(element, value) is True
        assert active_store.get_value(element) == value

    def test_time_pattern_is_structural_only(self):
        assert validate_element("cmi.core.session_time", "250:61:00") is True
        assert validate_element("cmi.core.session_time", "99:99:99.9") is True

    def test_script_is_stripped_before_storing(self, active_store):
        raw = 'resume<script>alert("x")</script> <a onclick=go()>javascript:run()</a>'
        assert active_store.set_value("cmi.suspend_data", raw) is True
        stored = active_store.get_value("cmi.suspend_data")
        assert stored == "resume <a go()>run()</a>"
        assert stored != raw

    def test_event_handler_names_are_ascii_only(self):
        assert sanitize_value("<a onclick=go()>x</a>") == "<a go()>x</a>"
        assert sanitize_value("<a on\u00fc=go()>x</a>") == "<a on\u00fc=go()>x</a>"
        assert sanitize_value("<a onclick\u00a0=go()>x</a>") == "<a go()>x</a>"

    @pytest.mark.parametrize(
        "element,value",
        [
            ("cmi.core.score.raw", "\u0668\u0660"),
            ("cmi.core.score.raw", "80\n"),
            ("cmi.core.session_time", "\uff10\uff10:00:00"),
            ("cmi.core.session_time", "00:00:00\n"),
        ],
    )
    def test_patterns_accept_ascii_digits_only(self, element, value):
        assert validate_element(element, value) is False

    def test_sanitize_trims_whitespace(self):
        assert sanitize_value("  <SCRIPT src=x></SCRIPT>note  ") == "note"

    def test_commit_hook_receives_snapshot(self):
        committed = []
        store = LocalRuntimeDataStore(on_commit=committed.append)
        store.initialize()
        store.set_value("cmi.core.score.raw", "90")
        assert store.commit() is True
        assert committed[0]["cmi.core.score.raw"] == "90"

    def test_instances_do_not_share_state(self):
        first = LocalRuntimeDataStore(student_id="s1")
        second = LocalRuntimeDataStore(student_id="s2")
        first.initialize()
        second.initialize()
        first.set_value("cmi.core.lesson_location", "p9")
        assert second.get_value("cmi.core.lesson_location") == ""
        assert second.get_value("cmi.core.student_id") == "s2"


class TestErrorStrings:
    def test_known_codes(self, store):
        for code, message in ERROR_MESSAGES.items():
            assert store.get_error_string(code) == message
        assert store.get_error_string("112") == "LMS not initialized"

    def test_unknown_code(self, store):
        assert store.get_error_string("999") == "Unknown error"


class TestProtocolSurfaces:
    def test_legacy_calls(self):
        api, _ = create_scorm_api(LocalRuntimeDataStore())
        assert api.LMSInitialize("") == "true"
        assert api.LMSSetValue("cmi.core.lesson_status", "completed") == "true"
        assert api.LMSGetValue("cmi.core.lesson_status") == "completed"
        assert api.LMSSetValue("cmi.core.credit", "no-credit") == "false"
        assert api.LMSGetLastError() == "403"
        assert api.LMSGetErrorString("403") == "Element is read only"
        assert api.LMSGetDiagnostic("403") == ""
        assert api.LMSCommit("") == "true"
        assert api.LMSFinish("") == "true"
        assert api.LMSGetValue("cmi.core.lesson_status") == ""
        assert api.LMSGetLastError() == "112"

    def test_both_conventions_share_one_store(self):
        store = LocalRuntimeDataStore()
        api, api_2004 = create_scorm_api(store)
        assert api_2004.Initialize("") == "true"
        assert api.LMSInitialize("") == "false"
        assert api_2004.GetLastError() == "101"
        assert api.LMSSetValue("cmi.core.score.raw", "75") == "true"
        assert api_2004.GetValue("cmi.core.score.raw") == "75"
        assert api_2004.Terminate("") == "true"
        assert store.state == SessionState.TERMINATED

    def test_call_dispatch(self):
        api, api_2004 = create_scorm_api(LocalRuntimeDataStore())
        assert api.call("LMSInitialize", "") == "true"
        assert api_2004.call("SetValue", "cmi.core.exit", "suspend") == "true"
        assert "LMSCommit" in api
        assert "LMSCommit" not in api_2004
        with pytest.raises(UnknownApiCallError):
            api.call("Initialize", "")
        with pytest.raises(AttributeError):
            api.Initialize
