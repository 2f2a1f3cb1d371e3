import json

import httpx

from services.shiprocket.couriers import parse_couriers, select_best_courier
from services.shiprocket.errors import ErrorKind
from services.shiprocket.schemas import Courier

from conftest import awb_assigned, courier_entry


def couriers_of(*entries):
    return [Courier.model_validate(entry) for entry in entries]


def serviceability(*entries):
    return httpx.Response(200, json={"data": {"available_courier_companies": list(entries)}})


def test_higher_rating_wins_regardless_of_rate():
    couriers = couriers_of(
        courier_entry(1, "Cheap", rate=40, rating=3.5),
        courier_entry(2, "Good", rate=90, rating=4.6),
    )
    assert select_best_courier(couriers).id == 2


def test_equal_rating_goes_to_cheaper_rate():
    couriers = couriers_of(
        courier_entry(1, "Pricey", rate=90, rating=4.0),
        courier_entry(2, "Cheap", rate=60, rating=4.0),
    )
    assert select_best_courier(couriers).id == 2


def test_full_tie_keeps_input_order():
    couriers = couriers_of(
        courier_entry(1, "First", rate=60, rating=4.0),
        courier_entry(2, "Second", rate=60, rating=4.0),
    )
    assert select_best_courier(couriers).id == 1


def test_couriers_without_estimate_are_ignored():
    couriers = couriers_of(
        courier_entry(1, "NoEstimate", rate=10, rating=5.0, days=""),
        courier_entry(2, "Estimated", rate=80, rating=3.0, days="4"),
    )
    assert select_best_courier(couriers).id == 2


def test_all_ratings_null_fall_back_to_first_raw_courier():
    couriers = couriers_of(
        courier_entry(1, "NoEstimate", rate=10, days=None),
        courier_entry(2, "Other", rate=5),
        courier_entry(3, "Third", rate=1),
    )
    assert select_best_courier(couriers).id == 1


def test_no_serviceable_courier_falls_back_to_first():
    couriers = couriers_of(
        courier_entry(1, "A", rate=10, rating=4.0, days=None),
        courier_entry(2, "B", rate=5, rating=5.0, days=""),
    )
    assert select_best_courier(couriers).id == 1


def test_missing_rate_sorts_last_among_equal_ratings():
    couriers = couriers_of(
        courier_entry(1, "NoRate", rating=4.0),
        courier_entry(2, "Rated", rate=70, rating=4.0),
    )
    assert select_best_courier(couriers).id == 2


def test_empty_list_selects_nothing():
    assert select_best_courier([]) is None


def test_recommended_policy():
    couriers = couriers_of(
        courier_entry(1, "BestRated", rate=50, rating=4.9),
        courier_entry(2, "Recommended", rate=80, rating=3.0, recommended=1),
    )
    assert select_best_courier(couriers).id == 1
    assert select_best_courier(couriers, prefer_recommended=True).id == 2


def test_recommended_policy_without_recommendation_uses_ratings():
    couriers = couriers_of(
        courier_entry(1, "Low", rate=50, rating=2.0),
        courier_entry(2, "High", rate=80, rating=4.0),
    )
    assert select_best_courier(couriers, prefer_recommended=True).id == 2


def test_courier_flags_and_blank_numbers():
    courier = Courier.model_validate({
        "courier_company_id": "12", "courier_name": "Xpress", "rate": "", "rating": "",
        "estimated_delivery_days": 2, "cod": 1, "is_recommended": 0,
    })
    assert courier.id == 12
    assert courier.rate is None
    assert courier.rating is None
    assert courier.estimated_delivery_days == "2"
    assert courier.cod_available is True
    assert courier.recommended is False


def test_parse_couriers_skips_malformed_entries():
    couriers = parse_couriers([courier_entry(1, "Ok", rate=10), {"courier_name": "NoId"}, "junk"])
    assert [c.id for c in couriers] == [1]
    assert parse_couriers(None) == []


async def test_get_available_couriers(couriers, api):
    api.add("GET", "/courier/serviceability/", serviceability(courier_entry(1, "A", rate=10, rating=4.0)))

    result = await couriers.get_available_couriers("101")

    assert result.success
    assert [c.name for c in result.couriers] == ["A"]
    assert api.calls[0].url.params["order_id"] == "101"


async def test_no_couriers_is_not_found(couriers, api):
    api.add("GET", "/courier/serviceability/", httpx.Response(200, json={"data": {"available_courier_companies": []}}))

    result = await couriers.get_available_couriers("101")

    assert not result.success
    assert result.error == "No couriers available"
    assert result.error_kind == ErrorKind.NOT_FOUND


async def test_assign_courier(couriers, api):
    api.add("POST", "/courier/assign/awb", httpx.Response(200, json=awb_assigned("AWB555", "Bluedart")))

    result = await couriers.assign_courier("202", 7, "ORD-001")

    assert result.success
    assert result.awb_number == "AWB555"
    assert result.courier_name == "Bluedart"
    assert json.loads(api.calls[0].content) == {"shipment_id": "202", "courier_id": 7}


async def test_assign_courier_without_status_one_fails(couriers, api):
    body = {"awb_assign_status": 0, "response": {"data": {"awb_assign_status": 0, "awb_assign_error": "Insufficient balance"}}}
    api.add("POST", "/courier/assign/awb", httpx.Response(200, json=body))

    result = await couriers.assign_courier("202", 7)

    assert not result.success
    assert result.details == body


async def test_verify_awb_polls_until_tracking_appears(couriers, api, sleeps):
    api.add(
        "GET",
        "/courier/track/shipment/202",
        httpx.Response(200, json={"tracking_data": {"error": "pending"}}),
        httpx.Response(200, json={"tracking_data": {"track_status": 1}}),
    )

    result = await couriers.verify_awb_generation("202", max_attempts=5, delay=3.0)

    assert result.success
    assert len(api.calls) == 2
    assert sleeps == [3.0]


async def test_verify_awb_times_out(couriers, api, sleeps):
    api.add("GET", "/courier/track/shipment/202", httpx.Response(200, json={"tracking_data": {}}))

    result = await couriers.verify_awb_generation("202", max_attempts=3, delay=2.0)

    assert not result.success
    assert result.error == "Timeout verifying AWB"
    assert len(api.calls) == 3
    assert sleeps == [2.0, 2.0]


async def test_auto_assign_selects_and_assigns(couriers, api, sleeps):
    api.add("GET", "/courier/serviceability/", serviceability(
        courier_entry(1, "Cheap", rate=40, rating=3.0),
        courier_entry(2, "Good", rate=90, rating=4.5, days="2"),
    ))
    api.add("POST", "/courier/assign/awb", httpx.Response(200, json=awb_assigned("AWB777", "")))

    result = await couriers.auto_assign_courier_and_generate_awb("101", "202", "ORD-001", initial_delay=3.0)

    assert result.success
    assert result.awb_number == "AWB777"
    assert result.courier_name == "Good"
    assert result.courier_id == 2
    assert result.courier_rate == 90
    assert result.estimated_delivery_days == "2"
    assert sleeps == [3.0]
    assert json.loads(api.calls_to("/courier/assign/awb")[0].content)["courier_id"] == 2


async def test_auto_assign_with_null_ratings_uses_first_courier(couriers, api):
    api.add("GET", "/courier/serviceability/", serviceability(
        courier_entry(5, "First", rate=100),
        courier_entry(6, "Second", rate=10),
    ))
    api.add("POST", "/courier/assign/awb", httpx.Response(200, json=awb_assigned()))

    result = await couriers.auto_assign_courier_and_generate_awb("101", "202", initial_delay=0)

    assert result.success
    assert result.courier_id == 5


async def test_auto_assign_reports_missing_couriers(couriers, api):
    api.add("GET", "/courier/serviceability/", httpx.Response(200, json={"data": {}}))

    result = await couriers.auto_assign_courier_and_generate_awb("101", "202", initial_delay=0)

    assert not result.success
    assert result.error == "No couriers available for this order"
    assert api.calls_to("/courier/assign/awb") == []
