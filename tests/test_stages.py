"""Tests for stage list helpers."""

from __future__ import annotations

import pytest

from pipegen.stages import dedupe_stages, find_stage, insert_after, insert_before, normalize_stages


def test_dedupe_keeps_first_spelling() -> None:
    assert dedupe_stages(["Build", " test", "build", "", "TEST", "deploy"]) == ["Build", "test", "deploy"]


def test_find_stage_is_case_insensitive() -> None:
    assert find_stage(["Build", "Test"], "test") == 1
    assert find_stage(["Build"], "deploy") is None


def test_insert_after_uses_first_present_anchor() -> None:
    stages = ["build", "deploy"]
    insert_after(stages, "security", "quality", "test", "build")
    assert stages == ["build", "security", "deploy"]

    insert_after(stages, "Security", "deploy")
    assert stages == ["build", "security", "deploy"]


def test_insert_after_appends_without_anchor() -> None:
    stages = ["package"]
    insert_after(stages, "quality", "test")
    assert stages == ["package", "quality"]


def test_insert_before() -> None:
    stages = ["build", "deploy"]
    insert_before(stages, "performance", "deploy")
    assert stages == ["build", "performance", "deploy"]

    other = ["build"]
    insert_before(other, "performance", "deploy")
    assert other == ["build", "performance"]


@pytest.mark.parametrize(
    ("stages", "include_tests", "expected"),
    [
        (["deploy", "build"], True, ("build", "test", "deploy")),
        (["deploy", "test", "build"], True, ("build", "test", "deploy")),
        (["deploy", "build", "test"], False, ("build", "deploy", "test")),
        (["package", "deploy"], True, ("test", "package", "deploy")),
        (["lint", "test", "deploy"], True, ("lint", "test", "deploy")),
        (["lint", "Test", "build"], True, ("build", "Test", "lint")),
        ([], False, ("build", "test", "deploy")),
        (["Build", "BUILD", "Deploy"], True, ("Build", "test", "Deploy")),
    ],
)
def test_normalize_stages(stages, include_tests, expected) -> None:
    assert normalize_stages(stages, include_tests=include_tests) == expected
