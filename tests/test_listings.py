from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from program_site.listings import ListingError, earliest_start_by_program, get_public_programs

from conftest import TODAY, days_from_today


def names(programs):
    return [p.name for p in programs]


# ---------------------------
# earliest_start_by_program
# ---------------------------

def test_earliest_start_keeps_first_date_per_program():
    rows = [
        (1, date(2030, 5, 3)),
        (2, date(2030, 1, 9)),
        (1, date(2030, 2, 1)),
        (2, None),
    ]
    assert earliest_start_by_program(rows) == {1: date(2030, 2, 1), 2: date(2030, 1, 9)}


def test_earliest_start_is_none_when_program_only_has_undated_rows():
    rows = [(7, None), (8, date(2030, 1, 1)), (7, None)]
    assert earliest_start_by_program(rows) == {8: date(2030, 1, 1), 7: None}


# ---------------------------
# get_public_programs
# ---------------------------

def test_program_without_sessions_or_external_details_is_hidden(db, make):
    make.program("Hidden")
    shown = make.program("Shown")
    make.session(shown, days_from_today(3))

    programs, has_more = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert names(programs) == ["Shown"]
    assert has_more is False


def test_unpublished_and_past_sessions_do_not_count(db, make):
    draft = make.program("Draft")
    past = make.program("Past")
    make.session(draft, days_from_today(5), is_published=False)
    make.session(past, days_from_today(-1))

    programs, _ = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert programs == []


def test_session_starting_today_is_upcoming(db, make):
    program = make.program("Today")
    make.session(program, TODAY)

    programs, _ = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert names(programs) == ["Today"]


def test_child_sessions_roll_up_to_parent(db, make):
    parent = make.program("Inner Engineering")
    child = make.program("Inner Engineering Online", parent=parent)
    make.session(child, days_from_today(10))

    programs, _ = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert names(programs) == ["Inner Engineering"]


def test_parent_takes_earliest_date_across_children(db, make):
    parent = make.program("Zeta Parent")
    child_a = make.program("Child A", parent=parent)
    child_b = make.program("Child B", parent=parent)
    other = make.program("Alpha")
    make.session(child_a, days_from_today(20))
    make.session(child_b, days_from_today(2))
    make.session(other, days_from_today(5))

    programs, _ = get_public_programs(db, offset=0, limit=6, today=TODAY)

    # Zeta Parent inherits Child B's date and so comes before Alpha
    assert names(programs) == ["Zeta Parent", "Alpha"]


def test_grandchild_sessions_roll_up_to_top_level_program(db, make):
    root = make.program("Root")
    middle = make.program("Middle", parent=root)
    leaf = make.program("Leaf", parent=middle)
    make.session(leaf, days_from_today(1))

    programs, _ = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert names(programs) == ["Root"]


def test_ordering_by_date_then_name_then_external(db, make):
    late = make.program("Bhava Spandana")
    early_b = make.program("Shoonya")
    early_a = make.program("Hatha Yoga")
    make.program("Sadhguru Gurukulam", details_external=True)
    make.program("Isha Samskriti", details_external=True)
    make.session(late, days_from_today(30))
    make.session(early_b, days_from_today(4))
    make.session(early_a, days_from_today(4))

    programs, _ = get_public_programs(db, offset=0, limit=10, today=TODAY)

    assert names(programs) == [
        "Hatha Yoga",
        "Shoonya",
        "Bhava Spandana",
        "Isha Samskriti",
        "Sadhguru Gurukulam",
    ]


def test_program_both_session_linked_and_external_appears_once(db, make):
    both = make.program("Both", details_external=True)
    make.program("Aardvark External", details_external=True)
    make.session(both, days_from_today(7))

    programs, _ = get_public_programs(db, offset=0, limit=10, today=TODAY)

    assert names(programs) == ["Both", "Aardvark External"]


def test_external_child_and_its_parent_are_deduplicated_by_id(db, make):
    parent = make.program("Parent")
    child = make.program("Child", parent=parent, details_external=True)
    make.session(child, days_from_today(3))

    programs, _ = get_public_programs(db, offset=0, limit=10, today=TODAY)

    # the session rolls up to Parent; the external flag on Child keeps it listed too
    assert names(programs) == ["Parent", "Child"]


def test_exactly_one_page_has_no_more(db, make):
    for i in range(6):
        make.session(make.program(f"Program {i}"), days_from_today(i + 1))

    programs, has_more = get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert len(programs) == 6
    assert has_more is False


def test_one_extra_program_sets_has_more(db, make):
    for i in range(7):
        make.session(make.program(f"Program {i}"), days_from_today(i + 1))

    programs, has_more = get_public_programs(db, offset=0, limit=6, today=TODAY)
    assert names(programs) == [f"Program {i}" for i in range(6)]
    assert has_more is True

    programs, has_more = get_public_programs(db, offset=6, limit=6, today=TODAY)
    assert names(programs) == ["Program 6"]
    assert has_more is False


def test_offset_past_the_end_returns_empty_page(db, make):
    make.session(make.program("Only"), days_from_today(1))

    programs, has_more = get_public_programs(db, offset=5, limit=6, today=TODAY)

    assert programs == []
    assert has_more is False


def test_repeated_calls_return_the_same_page(db, make):
    for i in range(4):
        make.session(make.program(f"P{i}"), days_from_today(2))
    make.program("External", details_external=True)

    first = get_public_programs(db, offset=1, limit=3, today=TODAY)
    second = get_public_programs(db, offset=1, limit=3, today=TODAY)

    assert [p.id for p in first[0]] == [p.id for p in second[0]]
    assert first[1] == second[1]


def test_backend_failure_raises_listing_error(db):
    with patch.object(db, "query", side_effect=OperationalError("SELECT", {}, Exception("connection lost"))):
        with pytest.raises(ListingError) as exc_info:
            get_public_programs(db, offset=0, limit=6, today=TODAY)

    assert "connection lost" in str(exc_info.value)
