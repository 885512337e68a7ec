"""Tests for logging helpers."""

from mail_dispatcher.core.logging import sanitize_for_log


def test_sanitize_for_log_removes_control_chars():
    assert sanitize_for_log("hello\x00world") == "helloworld"


def test_sanitize_for_log_strips_ansi_sequences():
    assert sanitize_for_log("\x1b[31m报告 - 财务部\x1b[0m") == "报告 - 财务部"


def test_sanitize_for_log_removes_newlines():
    assert sanitize_for_log("Subject\r\nInjected: yes") == "SubjectInjected: yes"


def test_sanitize_for_log_truncates():
    long_text = "x" * 200
    assert len(sanitize_for_log(long_text, 50)) == 50


def test_sanitize_for_log_empty():
    assert sanitize_for_log(None) == ""
