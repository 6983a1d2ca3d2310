from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from medstock.models.user import UserStatus


def _payload(name: str = "Paracetamol", *, days_left: int = 200, **overrides) -> dict:
    payload = {
        "name": name,
        "active_ingredient": "acetaminophen",
        "is_generic": True,
        "form": "tablet",
        "brand": "Tylenol",
        "dosage": "500mg",
        "category": "analgesic",
        "expires_on": (date.today() + timedelta(days=days_left)).isoformat(),
        "quantity_total": 20,
        "quantity_current": 20,
    }
    payload.update(overrides)
    return payload


async def _family_with(make_user, make_family, *members: str, code: str = "FAM-MED234"):
    for member in members:
        await make_user(member)
    return await make_family(code, members=list(members))


@pytest.mark.asyncio
async def test_medication_crud_flow(client: AsyncClient, make_user, make_family, headers_for) -> None:
    family = await _family_with(make_user, make_family, "owner", "partner")
    headers = headers_for("owner")

    created = await client.post("/medications", json=_payload(notes="  after meals "), headers=headers)
    assert created.status_code == 201
    medication = created.json()
    assert medication["family_id"] == str(family.id)
    assert medication["created_by"] == "owner"
    assert medication["expiry_status"] == "valid"
    assert medication["is_low_stock"] is False
    assert medication["notes"] == "after meals"

    partner_view = await client.get(f"/medications/{medication['id']}", headers=headers_for("partner"))
    assert partner_view.status_code == 200
    assert partner_view.json()["name"] == "Paracetamol"

    updated = await client.patch(
        f"/medications/{medication['id']}",
        json={"brand": None, "expires_on": (date.today() + timedelta(days=3)).isoformat()},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["brand"] is None
    assert updated.json()["dosage"] == "500mg"
    assert updated.json()["expiry_status"] == "expiring_soon"

    used = await client.patch(
        f"/medications/{medication['id']}/quantity", json={"quantity_current": 2}, headers=headers
    )
    assert used.status_code == 200
    assert used.json()["quantity_current"] == 2
    assert used.json()["is_low_stock"] is True

    deleted = await client.delete(f"/medications/{medication['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["medication_id"] == medication["id"]

    gone = await client.get(f"/medications/{medication['id']}", headers=headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_medications_are_scoped_to_the_family(
    client: AsyncClient, make_user, make_family, headers_for
) -> None:
    await _family_with(make_user, make_family, "owner")
    await _family_with(make_user, make_family, "neighbour", code="FAM-NBR234")

    created = await client.post("/medications", json=_payload(), headers=headers_for("owner"))
    medication_id = created.json()["id"]

    response = await client.get(f"/medications/{medication_id}", headers=headers_for("neighbour"))
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"

    listing = await client.get("/medications", headers=headers_for("neighbour"))
    assert listing.json()["items"] == []


@pytest.mark.asyncio
async def test_medications_require_family_and_approval(client: AsyncClient, make_user, headers_for) -> None:
    await make_user("loner")
    await make_user("waiting", status=UserStatus.PENDING)

    no_family = await client.get("/medications", headers=headers_for("loner"))
    assert no_family.status_code == 412
    assert no_family.json()["kind"] == "failed_precondition"

    pending = await client.get("/medications", headers=headers_for("waiting"))
    assert pending.status_code == 403
    assert pending.json()["kind"] == "permission_denied"


@pytest.mark.asyncio
async def test_quantity_rules_are_enforced(client: AsyncClient, make_user, make_family, headers_for) -> None:
    await _family_with(make_user, make_family, "owner")
    headers = headers_for("owner")

    too_many = await client.post(
        "/medications", json=_payload(quantity_total=5, quantity_current=6), headers=headers
    )
    assert too_many.status_code == 422
    assert too_many.json()["kind"] == "invalid_argument"

    negative = await client.post("/medications", json=_payload(quantity_current=-1), headers=headers)
    assert negative.status_code == 422
    assert negative.json()["kind"] == "invalid_argument"

    created = await client.post("/medications", json=_payload(), headers=headers)
    over_total = await client.patch(
        f"/medications/{created.json()['id']}/quantity", json={"quantity_current": 21}, headers=headers
    )
    assert over_total.status_code == 422

    bad_id = await client.get("/medications/not-a-uuid", headers=headers)
    assert bad_id.status_code == 422
    assert bad_id.json()["kind"] == "invalid_argument"


@pytest.mark.asyncio
async def test_list_filters_and_stats(client: AsyncClient, make_user, make_family, headers_for) -> None:
    await _family_with(make_user, make_family, "owner")
    headers = headers_for("owner")

    for payload in (
        _payload("Paracetamol"),
        _payload("Amoxicillin", days_left=7, active_ingredient="amoxicillin", brand=None,
                 form="capsule", category="antibiotic", is_generic=False, quantity_current=1),
        _payload("Ibuprofen", days_left=-2, active_ingredient="ibuprofen", brand="Advil"),
    ):
        response = await client.post("/medications", json=payload, headers=headers)
        assert response.status_code == 201

    everything = await client.get("/medications", headers=headers)
    assert [item["name"] for item in everything.json()["items"]] == [
        "Ibuprofen",
        "Amoxicillin",
        "Paracetamol",
    ]

    expiring = await client.get("/medications", params={"status": "expiring_soon"}, headers=headers)
    assert [item["name"] for item in expiring.json()["items"]] == ["Amoxicillin"]

    by_brand = await client.get("/medications", params={"search": "advil"}, headers=headers)
    assert [item["name"] for item in by_brand.json()["items"]] == ["Ibuprofen"]

    generics = await client.get(
        "/medications", params={"is_generic": "true", "form": "tablet"}, headers=headers
    )
    assert {item["name"] for item in generics.json()["items"]} == {"Paracetamol", "Ibuprofen"}

    bad_status = await client.get("/medications", params={"status": "fresh"}, headers=headers)
    assert bad_status.status_code == 422

    stats = await client.get("/medications/stats", headers=headers)
    assert stats.status_code == 200
    assert stats.json() == {"total": 3, "expiring_soon": 1, "expired": 1, "low_stock": 1}
