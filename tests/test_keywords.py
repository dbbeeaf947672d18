"""Tests for keyword normalization."""

import pytest

from metadatafy.keywords import KeywordNormalizer, build_search_text, path_tokens, split_identifier


@pytest.mark.parametrize(
    "identifier, expected",
    [
        ("attendance-modal", ["attendance", "modal"]),
        ("attendance_modal", ["attendance", "modal"]),
        ("AttendanceModal", ["attendance", "modal"]),
        ("attendanceModal", ["attendance", "modal"]),
        ("XMLHttpRequest", ["xml", "http", "request"]),
        ("user-ProfileCard", ["user", "profile", "card"]),
        ("v2Api", ["v", "2", "api"]),
        ("", []),
    ],
)
def test_split_identifier(identifier, expected):
    assert split_identifier(identifier) == expected


def test_path_tokens_drop_extension():
    assert path_tokens("components/attendance/attendance-modal.tsx") == [
        "components", "attendance", "attendance", "modal",
    ]


def test_keywords_are_unique_and_ordered():
    normalizer = KeywordNormalizer()
    keywords = normalizer.extract(
        "AttendanceModal",
        "components/attendance/attendance-modal.tsx",
        exports=["AttendanceModal"],
        props=["isOpen", "onClose"],
    )
    assert keywords == ["attendance", "modal", "components", "is", "open", "on", "close"]
    assert len(keywords) == len(set(keywords))


def test_mixed_separator_styles_yield_each_token_once():
    keywords = KeywordNormalizer().extract("attendance-Modal", "hooks/attendance_modal.ts")
    assert keywords.count("attendance") == 1
    assert keywords.count("modal") == 1


def test_synonyms_follow_their_token():
    normalizer = KeywordNormalizer({"Attendance": ["출석", "출결"], "modal": ["모달"]})
    keywords = normalizer.extract("AttendanceModal", "components/attendance-modal.tsx")
    assert keywords[:5] == ["attendance", "출석", "출결", "modal", "모달"]


def test_search_text_keeps_duplicates():
    text = build_search_text(
        "AttendanceModal",
        "components/attendance-modal.tsx",
        ["attendance", "modal"],
        exports=["AttendanceModal"],
        props=["isOpen"],
    )
    assert text == (
        "attendancemodal components/attendance-modal.tsx attendance modal attendancemodal isopen"
    )
