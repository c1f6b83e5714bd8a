import pytest
from bson import ObjectId

from app.checkout import find_offer, resolve_unit_price, price_lines, order_total
from app.models import OrderItemDB

PRODUCT_ID = ObjectId()
PRODUCT = {"_id": PRODUCT_ID, "name": "Tomatoes", "price": 100.0}


def campaign_with(discount: float, product_id=PRODUCT_ID) -> dict:
    return {"product_offers": [{"product_id": str(product_id), "discount_percentage": discount, "min_quantity": 5}]}


def test_list_price_without_campaign():
    assert resolve_unit_price(PRODUCT, None) == 100.0


def test_matching_offer_discounts_price():
    assert resolve_unit_price(PRODUCT, campaign_with(20)) == pytest.approx(80.0)


def test_offer_for_another_product_is_ignored():
    assert resolve_unit_price(PRODUCT, campaign_with(20, product_id=ObjectId())) == 100.0


def test_min_quantity_is_not_enforced():
    # A 1-unit line still gets the offer of a min_quantity 5 campaign
    lines = price_lines([({"quantity": 1}, PRODUCT)], campaign_with(10))
    assert lines[0].price_at_purchase == pytest.approx(90.0)


def test_discount_above_hundred_goes_negative():
    assert resolve_unit_price(PRODUCT, campaign_with(150)) == pytest.approx(-50.0)


def test_find_offer_handles_missing_campaign_and_offers():
    assert find_offer(None, str(PRODUCT_ID)) is None
    assert find_offer({}, str(PRODUCT_ID)) is None


def test_price_lines_capture_price_and_quantity():
    other = {"_id": ObjectId(), "name": "Basil", "price": 30.0}
    lines = price_lines([({"quantity": 2}, PRODUCT), ({"quantity": 3}, other)], campaign_with(20))
    assert [(l.product_id, l.quantity) for l in lines] == [(str(PRODUCT_ID), 2), (str(other["_id"]), 3)]
    assert lines[0].price_at_purchase == pytest.approx(80.0)
    assert lines[1].price_at_purchase == 30.0


def test_order_total_is_sum_of_price_times_quantity():
    items = [
        OrderItemDB(product_id="a", quantity=2, price_at_purchase=80.0),
        OrderItemDB(product_id="b", quantity=3, price_at_purchase=30.0),
    ]
    assert order_total(items) == pytest.approx(250.0)
    assert order_total([]) == 0
