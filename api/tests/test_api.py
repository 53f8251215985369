"""API tests: health, auth, site CRUD, booking and week grid through the HTTP surface."""

import pytest

from conftest import full_week
from sitebook.core.auth import create_access_token
from sitebook.models.site import DayOfWeek
from sitebook.services.temporal import project_date

SITES = "/api/v1/sites"


def _site_body(name="Riverside", courts=(1, 2), closed_days=(), **schedule) -> dict:
    return {
        "name": name,
        "closed_days": [d.isoformat() for d in closed_days],
        "courts": [{"number": n} for n in courts],
        "schedule": full_week(**schedule),
    }


@pytest.fixture
async def site(client, admin_headers):
    resp = await client.post(SITES, json=_site_body(), headers=admin_headers)
    assert resp.status_code == 201
    return resp.json()


def _book_body(site: dict, court_number=1, slot=1, week=10, state="booked", day="monday") -> dict:
    return {
        "planned_day_id": next(d["id"] for d in site["schedule"] if d["day_of_week"] == day),
        "court_id": next(c["id"] for c in site["courts"] if c["number"] == court_number),
        "time_slot_number": slot,
        "week_number": week,
        "book_state": state,
    }


# ---------------------------------------------------------------------------
# Health and auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "app": "SiteBook"}


@pytest.mark.asyncio
async def test_create_site_unauthenticated(client):
    resp = await client.post(SITES, json=_site_body())
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_site_as_member_is_forbidden(client, member_headers):
    resp = await client.post(SITES, json=_site_body(), headers=member_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_garbage_token(client):
    resp = await client.post(SITES, json=_site_body(), headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_token_of_wrong_type(client):
    token = create_access_token("1", {"role": "admin", "type": "refresh"})
    resp = await client.post(SITES, json=_site_body(), headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_booking_requires_authentication(client, site):
    resp = await client.post(f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site))
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Site CRUD
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_and_get_site(client, site):
    assert site["name"] == "Riverside"
    assert site["revenue"] == "0.00"
    assert [c["number"] for c in site["courts"]] == [1, 2]
    assert len(site["schedule"]) == 7
    assert site["schedule"][0]["start_time"] == "08:00:00"
    assert all(d["time_slots"] == [] for d in site["schedule"])

    resp = await client.get(f"{SITES}/{site['id']}")
    assert resp.status_code == 200
    assert resp.json() == site


@pytest.mark.asyncio
async def test_get_unknown_site(client):
    resp = await client.get(f"{SITES}/4242")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Site not found"


@pytest.mark.asyncio
async def test_site_ids_beyond_the_integer_range_are_not_found(client, admin_headers):
    huge = 2**70

    resp = await client.get(f"{SITES}/{huge}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Site not found"

    resp = await client.get(f"{SITES}/{huge}/weeks/10")
    assert resp.status_code == 404

    resp = await client.delete(f"{SITES}/{huge}", headers=admin_headers)
    assert resp.status_code == 404

    resp = await client.put(
        f"{SITES}/{huge}/schedule", json={"planned_days": full_week()}, headers=admin_headers
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_site_with_six_days(client, admin_headers):
    body = _site_body()
    body["schedule"] = body["schedule"][:6]
    resp = await client.post(SITES, json=body, headers=admin_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_site_with_duplicate_day(client, admin_headers):
    body = _site_body()
    body["schedule"][6]["day_of_week"] = "monday"
    resp = await client.post(SITES, json=body, headers=admin_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_site_with_duplicate_court_numbers(client, admin_headers):
    resp = await client.post(SITES, json=_site_body(courts=(1, 1)), headers=admin_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_site_with_too_many_slots(client, admin_headers):
    resp = await client.post(SITES, json=_site_body(slots=9), headers=admin_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_and_page_sites(client, admin_headers):
    for name in ["Beta Courts", "Alpha Courts", "Gamma Club"]:
        resp = await client.post(SITES, json=_site_body(name=name), headers=admin_headers)
        assert resp.status_code == 201

    resp = await client.get(SITES)
    assert resp.status_code == 200
    assert [s["name"] for s in resp.json()] == ["Alpha Courts", "Beta Courts", "Gamma Club"]
    assert all(s["court_count"] == 2 for s in resp.json())

    resp = await client.get(f"{SITES}/page", params={"page_number": 1, "page_size": 1, "name": "courts"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_items"] == 2
    assert body["page_number"] == 1
    assert [s["name"] for s in body["items"]] == ["Alpha Courts"]


@pytest.mark.asyncio
async def test_page_rejects_page_zero(client):
    resp = await client.get(f"{SITES}/page", params={"page_number": 0})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_page_rejects_huge_page_number(client):
    resp = await client.get(f"{SITES}/page", params={"page_number": 2**70})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_page_name_filter_treats_percent_literally(client, admin_headers):
    await client.post(SITES, json=_site_body(name="Alpha Courts"), headers=admin_headers)

    resp = await client.get(f"{SITES}/page", params={"name": "%"})
    assert resp.status_code == 200
    assert resp.json()["total_items"] == 0


@pytest.mark.asyncio
async def test_update_site(client, site, admin_headers, member_headers):
    await client.post(
        f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site, court_number=1), headers=member_headers
    )

    body = _site_body(name="Riverside Park", courts=(2, 5), slots=6)
    resp = await client.put(f"{SITES}/{site['id']}", json=body, headers=admin_headers)
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["name"] == "Riverside Park"
    assert [c["number"] for c in updated["courts"]] == [2, 5]
    assert updated["schedule"][0]["id"] == site["schedule"][0]["id"]
    assert updated["schedule"][0]["number_of_time_slots"] == 6
    # Court 1 went, and its booking with it
    assert all(d["time_slots"] == [] for d in updated["schedule"])


@pytest.mark.asyncio
async def test_update_unknown_site(client, admin_headers):
    resp = await client.put(f"{SITES}/4242", json=_site_body(), headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_schedule(client, site, admin_headers):
    resp = await client.put(
        f"{SITES}/{site['id']}/schedule",
        json={"planned_days": full_week(slots=2, start="10:00")},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    monday = resp.json()["schedule"][0]
    assert monday["number_of_time_slots"] == 2
    assert monday["start_time"] == "10:00:00"


@pytest.mark.asyncio
async def test_delete_site(client, site, admin_headers, member_headers):
    await client.post(f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site), headers=member_headers)

    resp = await client.delete(f"{SITES}/{site['id']}", headers=admin_headers)
    assert resp.status_code == 204

    resp = await client.get(f"{SITES}/{site['id']}")
    assert resp.status_code == 404

    resp = await client.delete(f"{SITES}/{site['id']}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_site_as_member_is_forbidden(client, site, member_headers):
    resp = await client.delete(f"{SITES}/{site['id']}", headers=member_headers)
    assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_book_and_rebook(client, site, member_headers):
    url = f"{SITES}/{site['id']}/timeslots/book"

    resp = await client.post(url, json=_book_body(site, slot=2, week=10), headers=member_headers)
    assert resp.status_code == 200
    first = resp.json()
    assert first["book_state"] == "booked"
    assert first["time_slot_number"] == 2
    expected_day = project_date(10, DayOfWeek.MONDAY)
    assert first["computed_date_time"] == f"{expected_day.isoformat()}T09:45:00"

    resp = await client.post(url, json=_book_body(site, slot=2, week=10, state="paid"), headers=member_headers)
    assert resp.status_code == 200
    assert resp.json()["id"] == first["id"]
    assert resp.json()["book_state"] == "paid"

    details = (await client.get(f"{SITES}/{site['id']}")).json()
    assert [ts["id"] for ts in details["schedule"][0]["time_slots"]] == [first["id"]]


@pytest.mark.asyncio
async def test_book_slot_out_of_range(client, site, member_headers):
    resp = await client.post(
        f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site, slot=5), headers=member_headers
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "time_slot_number"


@pytest.mark.asyncio
async def test_book_week_out_of_range(client, site, member_headers):
    resp = await client.post(
        f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site, week=54), headers=member_headers
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "week_number"


@pytest.mark.asyncio
async def test_book_unknown_court(client, site, member_headers):
    body = _book_body(site) | {"court_id": 9999}
    resp = await client.post(f"{SITES}/{site['id']}/timeslots/book", json=body, headers=member_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Court not found"


@pytest.mark.asyncio
async def test_book_with_ids_beyond_the_integer_range(client, site, member_headers):
    huge = 2**70

    body = _book_body(site) | {"planned_day_id": huge}
    resp = await client.post(f"{SITES}/{site['id']}/timeslots/book", json=body, headers=member_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Planned day not found"

    body = _book_body(site) | {"court_id": huge}
    resp = await client.post(f"{SITES}/{site['id']}/timeslots/book", json=body, headers=member_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Court not found"

    resp = await client.post(f"{SITES}/{huge}/timeslots/book", json=_book_body(site), headers=member_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Site not found"


@pytest.mark.asyncio
async def test_book_against_the_wrong_site(client, site, admin_headers, member_headers):
    resp = await client.post(SITES, json=_site_body(name="Elsewhere"), headers=admin_headers)
    other = resp.json()

    resp = await client.post(f"{SITES}/{other['id']}/timeslots/book", json=_book_body(site), headers=member_headers)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Planned day not found"


@pytest.mark.asyncio
async def test_book_invalid_state(client, site, member_headers):
    body = _book_body(site) | {"book_state": "reserved"}
    resp = await client.post(f"{SITES}/{site['id']}/timeslots/book", json=body, headers=member_headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_book_on_a_closed_day(client, admin_headers, member_headers):
    closed = project_date(30, DayOfWeek.MONDAY)
    resp = await client.post(SITES, json=_site_body(closed_days=[closed]), headers=admin_headers)
    site = resp.json()
    assert site["closed_days"] == [closed.isoformat()]

    resp = await client.post(
        f"{SITES}/{site['id']}/timeslots/book", json=_book_body(site, week=30), headers=member_headers
    )
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "closed_day"


@pytest.mark.asyncio
async def test_shrunk_day_keeps_booking_but_rejects_new_ones(client, site, admin_headers, member_headers):
    url = f"{SITES}/{site['id']}/timeslots/book"
    resp = await client.post(url, json=_book_body(site, slot=4), headers=member_headers)
    booked = resp.json()

    resp = await client.put(
        f"{SITES}/{site['id']}/schedule", json={"planned_days": full_week(slots=2)}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert [ts["id"] for ts in resp.json()["schedule"][0]["time_slots"]] == [booked["id"]]

    resp = await client.post(url, json=_book_body(site, slot=4, week=11), headers=member_headers)
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Week grid
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_week_grid(client, site, member_headers):
    await client.post(
        f"{SITES}/{site['id']}/timeslots/book",
        json=_book_body(site, court_number=2, slot=3, week=15),
        headers=member_headers,
    )

    resp = await client.get(f"{SITES}/{site['id']}/weeks/15")
    assert resp.status_code == 200
    grid = resp.json()
    assert grid["site_name"] == "Riverside"
    assert len(grid["days"]) == 7

    monday = grid["days"][0]
    assert monday["date"] == project_date(15, DayOfWeek.MONDAY).isoformat()
    assert len(monday["slots"]) == 8
    taken = [s for s in monday["slots"] if not s["is_available"]]
    assert len(taken) == 1
    assert taken[0]["court_number"] == 2
    assert taken[0]["time_slot_number"] == 3
    assert taken[0]["book_state"] == "booked"


@pytest.mark.asyncio
async def test_week_grid_bad_week(client, site):
    resp = await client.get(f"{SITES}/{site['id']}/weeks/0")
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["rule"] == "week_number"


@pytest.mark.asyncio
async def test_week_grid_unknown_site(client):
    resp = await client.get(f"{SITES}/4242/weeks/10")
    assert resp.status_code == 404
