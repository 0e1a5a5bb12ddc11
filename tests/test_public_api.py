from datetime import time
from unittest.mock import patch

import pytest

from program_site.listings import ListingError
from program_site.routers.public import listing_window, parse_non_negative_int

from conftest import days_from_today


# ---------------------------
# Query parameter parsing
# ---------------------------

@pytest.mark.parametrize("raw, expected", [
    (None, 4),
    ("", 4),
    ("abc", 4),
    ("-3", 4),
    ("2.9", 2),
    ("12", 12),
    ("inf", 4),
])
def test_parse_non_negative_int(raw, expected):
    assert parse_non_negative_int(raw, 4) == expected


@pytest.mark.parametrize("offset, limit, expected", [
    (None, None, (0, 6)),
    ("3", "10", (3, 10)),
    ("-1", "0", (0, 1)),
    ("0", "500", (0, 50)),
])
def test_listing_window_clamps(offset, limit, expected):
    assert listing_window(offset, limit) == expected


# ---------------------------
# GET /api/programs
# ---------------------------

def test_api_programs_returns_page_and_has_more(client, make):
    for i in range(3):
        make.session(make.program(f"Program {i}"), days_from_today(i + 1))

    response = client.get("/api/programs", params={"offset": 0, "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert [p["name"] for p in body["programs"]] == ["Program 0", "Program 1"]
    assert body["hasMore"] is True
    assert body["programs"][0]["slug"] == "program-0"


def test_api_programs_defaults_to_six(client, make):
    for i in range(7):
        make.session(make.program(f"Program {i}"), days_from_today(i + 1))

    body = client.get("/api/programs").json()

    assert len(body["programs"]) == 6
    assert body["hasMore"] is True


def test_api_programs_empty_listing(client):
    response = client.get("/api/programs")

    assert response.status_code == 200
    assert response.json() == {"programs": [], "hasMore": False}


def test_api_programs_backend_error_is_500(client):
    with patch("program_site.routers.public.get_public_programs", side_effect=ListingError("relation does not exist")):
        response = client.get("/api/programs")

    assert response.status_code == 500
    assert response.json() == {"error": "relation does not exist"}


def test_programs_page_lists_first_page(client, make):
    make.program("External", details_external=True, external_link="https://example.org")

    body = client.get("/programs").json()

    assert [p["name"] for p in body["programs"]] == ["External"]
    assert body["programs"][0]["external_link"] == "https://example.org"


# ---------------------------
# GET /programs/{slug}
# ---------------------------

def test_program_page_lists_cities_of_program_family(client, make):
    kochi = make.city("Kochi", slug="kochi-city")
    thrissur = make.city("Thrissur")
    parent = make.program("Hatha Yoga")
    child = make.program("Hatha Yoga Kids", parent=parent)
    make.session(parent, days_from_today(2), venue=make.venue("Isha Center", city=kochi))
    make.session(child, days_from_today(4), venue=make.venue("Town Hall", city=thrissur))
    make.session(parent, days_from_today(-4), venue=make.venue("Old Venue", city=make.city("Kannur")))

    response = client.get("/programs/hatha-yoga")

    assert response.status_code == 200
    cities = response.json()["cities"]
    assert [(c["city_name"], c["slug"], c["slug_source"]) for c in cities] == [
        ("Kochi", "kochi-city", "db"),
        ("Thrissur", "thrissur", "derived"),
    ]


def test_program_page_unknown_program_is_404(client):
    response = client.get("/programs/unknown")

    assert response.status_code == 404
    assert response.json()["detail"] == "Program not found"


def test_program_page_by_id_redirects_to_slug(client, make):
    program = make.program("Shoonya")

    response = client.get(f"/programs/{program.id}", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/programs/shoonya"


def test_city_page_by_id_keeps_venue_and_date_filters(client, make):
    program = make.program("Shoonya")

    response = client.get(
        f"/programs/{program.id}/centers/kochi",
        params={"venue": "isha-center", "date": "2030-06-15"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "/programs/shoonya/centers/kochi?venue=isha-center&date=2030-06-15"


# ---------------------------
# GET /programs/{slug}/centers/{city}
# ---------------------------

def test_city_page_filters_by_city_and_formats_sessions(client, make):
    kochi = make.city("Kochi")
    program = make.program("Hatha Yoga")
    contact = make.contact("Anu", city=kochi, phone="+91 98765 43210")
    hall = make.venue("Isha Center", city=kochi, google_maps_url="maps.example.com/isha")
    make.session(
        program,
        days_from_today(3),
        venue=hall,
        contact=contact,
        end_date=days_from_today(5),
        start_time=time(6, 0),
        end_time=time(18, 30),
        language="Malayalam",
        registrations_allowed=True,
        registration_link="register.example.org/hatha",
    )
    make.session(program, days_from_today(1), venue=make.venue("Elsewhere", city=make.city("Kannur")))

    response = client.get("/programs/hatha-yoga/centers/kochi")

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Hatha Yoga in Kochi"
    assert len(body["sessions"]) == 1
    session = body["sessions"][0]
    assert session["time_label"] == "6:00 AM – 6:30 PM"
    assert " – " in session["dates_label"]
    assert session["registration_url"] == "https://register.example.org/hatha"
    assert session["venue"]["google_maps_url"] == "https://maps.example.com/isha"
    assert session["contact"]["phone"] == "+91 98765 43210"


def test_city_page_honours_venue_and_requested_past_date(client, make):
    kochi = make.city("Kochi")
    program = make.program("Yoga")
    hall = make.venue("Hall", city=kochi)
    temple = make.venue("Temple", city=kochi)
    yesterday = days_from_today(-1)
    make.session(program, yesterday, venue=hall)
    make.session(program, days_from_today(2), venue=hall)
    make.session(program, days_from_today(2), venue=temple)
    make.session(program, days_from_today(-5), venue=hall)

    response = client.get(
        "/programs/yoga/centers/kochi",
        params={"venue": "hall", "date": yesterday.isoformat()},
    )

    dates = [s["start_date"] for s in response.json()["sessions"]]
    assert dates == [yesterday.isoformat(), days_from_today(2).isoformat()]


def test_all_programs_city_page(client, make):
    kochi = make.city("Kochi")
    hall = make.venue("Hall", city=kochi)
    make.session(make.program("A"), days_from_today(1), venue=hall)
    make.session(make.program("B"), days_from_today(2), venue=hall)
    make.session(make.program("C"), days_from_today(2), venue=hall, is_published=False)

    body = client.get("/programs/all-programs/centers/kochi").json()

    assert body["title"] == "All programs in Kochi"
    assert body["program"] is None
    assert [s["program"]["name"] for s in body["sessions"]] == ["A", "B"]


def test_city_page_without_sessions_uses_slug_as_name(client, make):
    make.program("Yoga")

    body = client.get("/programs/yoga/centers/nowhere").json()

    assert body["title"] == "Yoga in nowhere"
    assert body["sessions"] == []


# ---------------------------
# GET /programs/{slug}/venues/{venue}
# ---------------------------

def test_venue_page_lists_upcoming_sessions(client, make):
    kochi = make.city("Kochi")
    parent = make.program("Yoga")
    child = make.program("Yoga Juniors", parent=parent)
    hall = make.venue("Hall", city=kochi)
    make.session(child, days_from_today(2), venue=hall)
    make.session(parent, days_from_today(-2), venue=hall)

    body = client.get("/programs/yoga/venues/hall").json()

    assert body["title"] == "Yoga at Hall"
    assert body["venue"]["city_name"] == "Kochi"
    assert [s["program"]["name"] for s in body["sessions"]] == ["Yoga Juniors"]


def test_venue_page_unknown_venue_is_404(client, make):
    make.program("Yoga")

    assert client.get("/programs/yoga/venues/nowhere").status_code == 404


# ---------------------------
# GET /centers, GET /contact
# ---------------------------

def test_centers_lists_cities_with_effective_slug(client, make):
    make.city("Thrissur")
    make.city("Kochi", slug="ernakulam")

    body = client.get("/centers").json()

    assert [(c["city_name"], c["slug"]) for c in body] == [("Kochi", "ernakulam"), ("Thrissur", "thrissur")]


def test_contact_page_groups_by_city(client, make):
    kochi = make.city("Kochi")
    make.contact("Zara", city=kochi)
    make.contact("Arun", city=kochi)
    make.contact("Meera")

    body = client.get("/contact").json()

    assert [g["city_name"] for g in body] == ["Kochi", "Other"]
    assert [c["name"] for c in body[0]["contacts"]] == ["Arun", "Zara"]


def test_root_redirects_to_programs(client):
    response = client.get("/", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/programs"
