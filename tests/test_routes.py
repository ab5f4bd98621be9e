from datetime import timedelta

from repository.queue import QueueRepo
from tables.appointments import Appointment, CONFIRMED
from tables.queue_entries import UP_NEXT, IN_PROGRESS, WAITING
from utils.shop_time import shop_day_bounds, shop_today


def join_payload(seed, name="Walk-in", **extra):
    payload = {"barber_id": seed.barber.id, "service_id": seed.haircut.id, "customer_name": name}
    payload.update(extra)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_then_login(client):
    res = client.post("/auth/signup", json={
        "username": "carla", "password": "pass1234", "full_name": "Carla Diaz", "email": "carla@example.com"
    }).json()
    assert res["code"] == "200"
    assert res["result"]["role"] == "customer"
    assert res["result"]["access_token"]

    again = client.post("/auth/signup", json={
        "username": "carla", "password": "pass1234", "full_name": "Carla Diaz"
    }).json()
    assert again["code"] == "400"

    bad = client.post("/auth/login", json={"username": "carla", "password": "nope"}).json()
    assert bad["code"] == "400"

    good = client.post("/auth/login", json={"username": "carla", "password": "pass1234"}).json()
    assert good["code"] == "200"


def test_barber_signup_creates_profile_and_blocks_second_login(client):
    res = client.post("/auth/signup", json={
        "username": "dario", "password": "pass1234", "full_name": "Dario Cruz", "is_barber": True
    }).json()
    assert res["result"]["role"] == "barber"
    assert res["result"]["barber_id"]

    second = client.post("/auth/login", json={"username": "dario", "password": "pass1234"}).json()
    assert second["code"] == "409"

    headers = {"Authorization": f"Bearer {res['result']['access_token']}"}
    assert client.post("/auth/logout", headers=headers).json()["code"] == "200"

    third = client.post("/auth/login", json={"username": "dario", "password": "pass1234"}).json()
    assert third["code"] == "200"


def test_logout_takes_barber_offline(client, db, seed, auth_headers):
    headers = auth_headers(seed.barber_user)
    client.post("/auth/logout", headers=headers)

    db.expire_all()
    assert seed.barber.is_available is False
    assert seed.barber.is_active is False
    assert client.get("/queue/details/%d" % seed.barber.id, headers=headers).status_code == 401


def test_lists(client, seed):
    services = client.get("/services").json()
    assert [s["name"] for s in services] == ["Haircut", "Haircut + Beard"]

    barbers = client.get("/barbers").json()
    assert {b["full_name"] for b in barbers} == {"Marco Reyes", "Jun Santos"}


def test_walk_in_join_without_account(client, seed):
    res = client.post("/queue", json=join_payload(seed))
    assert res.status_code == 200
    assert res.json()["status"] == UP_NEXT
    assert res.json()["user_id"] is None

    second = client.post("/queue", json=join_payload(seed, "Second"))
    assert second.json()["status"] == WAITING


def test_join_validation_and_domain_errors(client, seed):
    assert client.post("/queue", json=join_payload(seed, head_count=0)).status_code == 422
    assert client.post("/queue", json=join_payload(seed, service_id=9999)).status_code == 400

    res = client.post("/queue", json=join_payload(seed, barber_id=9999))
    assert res.status_code == 400
    assert "error" in res.json()


def test_double_join_is_a_conflict(client, seed, auth_headers):
    headers = auth_headers(seed.customer)
    first = client.post("/queue", json=join_payload(seed, "Ana"), headers=headers)
    assert first.status_code == 200

    res = client.post("/queue", json=join_payload(seed, "Ana", barber_id=seed.other_barber.id), headers=headers)
    assert res.status_code == 409
    assert res.json()["error"] == "You already have an active booking."
    assert res.json()["details"]["id"] == first.json()["id"]


def test_bad_token_is_rejected_even_for_walk_in_join(client, seed):
    res = client.post("/queue", json=join_payload(seed), headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401


def test_barber_runs_the_chair(client, db, seed, auth_headers):
    barber = auth_headers(seed.barber_user)
    a = client.post("/queue", json=join_payload(seed, "A", head_count=2)).json()
    c = client.post("/queue", json=join_payload(seed, "C")).json()

    res = client.put("/queue/next", json={"barber_id": seed.barber.id, "queue_id": a["id"]}, headers=barber)
    assert res.status_code == 200
    assert res.json()["status"] == IN_PROGRESS

    busy = client.put("/queue/next", json={"barber_id": seed.barber.id, "queue_id": c["id"]}, headers=barber)
    assert busy.status_code == 409

    done = client.post("/queue/complete", json={
        "barber_id": seed.barber.id, "queue_id": a["id"], "tip_amount": 20
    }, headers=barber)
    assert done.status_code == 200
    assert done.json()["entry"]["status"] == "Done"
    assert done.json()["total_price"] == 320.0

    db.expire_all()
    promoted = QueueRepo.get(db, c["id"])
    assert promoted.status == UP_NEXT
    assert promoted.notified_up_next is True  # background dispatch ran after the response


def test_only_the_owning_barber_may_act(client, seed, auth_headers):
    a = client.post("/queue", json=join_payload(seed, "A")).json()
    payload = {"barber_id": seed.barber.id, "queue_id": a["id"]}

    assert client.put("/queue/next", json=payload, headers=auth_headers(seed.other_barber_user)).status_code == 403
    assert client.put("/queue/cancel", json=payload, headers=auth_headers(seed.customer)).status_code == 403
    assert client.put("/queue/next", json=payload).status_code in (401, 403)

    assert client.put("/queue/cancel", json=payload, headers=auth_headers(seed.admin)).status_code == 200


def test_customer_leaves_own_entry_only(client, seed, auth_headers):
    owner = auth_headers(seed.customer)
    entry = client.post("/queue", json=join_payload(seed, "Ana"), headers=owner).json()

    assert client.delete(f"/queue/{entry['id']}", headers=auth_headers(seed.other_customer)).status_code == 403
    assert client.delete(f"/queue/{entry['id']}", headers=owner).status_code == 200
    assert client.delete(f"/queue/{entry['id']}", headers=owner).status_code == 404


def test_confirm_attendance_route(client, seed, auth_headers):
    owner = auth_headers(seed.customer)
    entry = client.post("/queue", json=join_payload(seed, "Ana"), headers=owner).json()

    res = client.put(f"/queue/{entry['id']}/confirm", headers=owner)
    assert res.status_code == 200
    assert res.json()["is_confirmed"] is True


def test_queue_details_and_public_board(client, db, seed, auth_headers):
    a = client.post("/queue", json=join_payload(seed, "A")).json()
    b = client.post("/queue", json=join_payload(seed, "B")).json()
    c = client.post("/queue", json=join_payload(seed, "C")).json()

    _, day_end = shop_day_bounds(shop_today())
    start = day_end - timedelta(minutes=1)
    appointment = Appointment(
        barber_id=seed.barber.id, service_id=seed.haircut.id, customer_name="Private Person",
        scheduled_time=start, end_time=start + timedelta(minutes=30), status=CONFIRMED,
    )
    db.add(appointment)
    db.commit()

    details = client.get(f"/queue/details/{seed.barber.id}", headers=auth_headers(seed.barber_user)).json()
    assert details["up_next"]["id"] == a["id"]
    assert [e["id"] for e in details["waiting"]] == [b["id"], c["id"]]
    assert details["in_progress"] is None
    assert details["next_appointment"]["id"] == appointment.id

    board = client.get(f"/queue/public/{seed.barber.id}").json()
    assert [row["id"] for row in board] == [a["id"], b["id"], c["id"], f"appt_{appointment.id}"]
    ghost = board[-1]
    assert ghost["customer_name"] == "Reserved Slot"
    assert ghost["status"] == "Reserved"
    assert ghost["is_ghost"] is True
    assert "email" not in ghost


def test_details_are_owner_only(client, seed, auth_headers):
    res = client.get(f"/queue/details/{seed.barber.id}", headers=auth_headers(seed.customer))
    assert res.status_code == 403


def test_slots_book_and_reject(client, seed, auth_headers, tomorrow_at):
    customer = auth_headers(seed.customer)
    start = tomorrow_at(14, 0)

    slots = client.get("/appointments/slots", params={
        "barber_id": seed.barber.id, "service_id": seed.haircut.id, "date": start.date().isoformat()
    }).json()["slots"]
    assert any(s.startswith(start.isoformat()) for s in slots)

    booked = client.post("/appointments/book", json={
        "barber_id": seed.barber.id, "service_id": seed.haircut.id,
        "scheduled_time": start.isoformat(), "customer_name": "Ana Cruz",
        "customer_phone": "+639171234567", "push_token": "device-token"
    }, headers=customer)
    assert booked.status_code == 200
    assert booked.json()["customer_phone"] == "+639171234567"
    assert "push_token" not in booked.json()
    assert booked.json()["status"] == "confirmed"
    assert booked.json()["scheduled_time"].startswith(start.isoformat())

    taken = client.post("/appointments/book", json={
        "barber_id": seed.barber.id, "service_id": seed.haircut.id,
        "scheduled_time": start.isoformat(), "customer_name": "Ben Lim"
    }, headers=auth_headers(seed.other_customer))
    assert taken.status_code == 409
    assert taken.json()["error"] == "Slot was just taken. Please choose another."

    slots = client.get("/appointments/slots", params={
        "barber_id": seed.barber.id, "service_id": seed.haircut.id, "date": start.date().isoformat()
    }).json()["slots"]
    assert not any(s.startswith(start.isoformat()) for s in slots)

    mine = client.get("/appointments/my", headers=customer).json()
    assert [a["id"] for a in mine] == [booked.json()["id"]]

    schedule = client.get(f"/appointments/barber/{seed.barber.id}", headers=auth_headers(seed.barber_user)).json()
    assert [a["id"] for a in schedule] == [booked.json()["id"]]

    appointment_id = booked.json()["id"]
    forbidden = client.put(f"/appointments/{appointment_id}/reject", json={}, headers=auth_headers(seed.other_barber_user))
    assert forbidden.status_code == 403

    rejected = client.put(f"/appointments/{appointment_id}/reject", json={"reason": "Shop closed"},
                          headers=auth_headers(seed.barber_user))
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "cancelled"
    assert rejected.json()["cancellation_reason"] == "Shop closed"


def test_same_day_booking_is_a_validation_error(client, seed, auth_headers):
    today = shop_today()
    res = client.post("/appointments/book", json={
        "barber_id": seed.barber.id, "service_id": seed.haircut.id,
        "scheduled_time": f"{today.isoformat()}T18:00:00", "customer_name": "Ana Cruz"
    }, headers=auth_headers(seed.customer))
    assert res.status_code == 400


def test_availability_toggle(client, db, seed, auth_headers):
    headers = auth_headers(seed.barber_user)

    res = client.put(f"/barbers/{seed.barber.id}/availability", json={"is_available": False}, headers=headers)
    assert res.status_code == 200
    assert res.json()["is_available"] is False
    db.expire_all()
    assert seed.barber_user.current_session_id is None

    blocked = client.post("/queue", json=join_payload(seed))
    assert blocked.status_code == 409

    res = client.put(f"/barbers/{seed.barber.id}/availability", json={"is_available": True}, headers=headers)
    assert res.status_code == 200
    assert res.json()["is_available"] is True


def test_availability_refused_from_a_second_session(client, seed, auth_headers):
    first = auth_headers(seed.barber_user)
    auth_headers(seed.barber_user)  # newer login takes the marker

    res = client.put(f"/barbers/{seed.barber.id}/availability", json={"is_available": False}, headers=first)
    assert res.status_code == 403

    other = client.put(f"/barbers/{seed.barber.id}/availability", json={"is_available": False},
                       headers=auth_headers(seed.other_barber_user))
    assert other.status_code == 403
