import pytest

from parcelhub.core.constants import OrderStatus
from parcelhub.providers.delhivery import DELHIVERY_STATUS_MAP
from parcelhub.providers.nimbuspost import NIMBUSPOST_STATUS_MAP
from parcelhub.providers.overseas_logistic import OVERSEAS_STATUS_MAP
from parcelhub.providers.status import fold_status, status_table


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Out for Delivery", OrderStatus.OUT_FOR_DELIVERY),
        ("  out for delivery ", OrderStatus.OUT_FOR_DELIVERY),
        ("OFD", OrderStatus.OUT_FOR_DELIVERY),
        ("Delivered", OrderStatus.DELIVERED),
        ("Manifested", OrderStatus.CONFIRMED),
        ("RTO", OrderStatus.RTO),
        ("in_transit", OrderStatus.IN_TRANSIT),
        ("Shipment Delivered to consignee", OrderStatus.DELIVERED),
        ("Reached transit hub", OrderStatus.IN_TRANSIT),
        ("Undelivered", OrderStatus.IN_TRANSIT),
        ("weirdstatus123", OrderStatus.PENDING),
        ("", OrderStatus.PENDING),
        ("   ", OrderStatus.PENDING),
        (None, OrderStatus.PENDING),
        (42, OrderStatus.PENDING),
        ({"status": "delivered"}, OrderStatus.PENDING),
    ],
)
def test_fold_status_is_total(raw, expected):
    assert fold_status(raw, DELHIVERY_STATUS_MAP) is expected


def test_partner_table_wins_over_keywords():
    # "manifested" contains no keyword but NimbusPost treats it as moving
    assert fold_status("manifested", NIMBUSPOST_STATUS_MAP) is OrderStatus.IN_TRANSIT
    assert fold_status("manifested", DELHIVERY_STATUS_MAP) is OrderStatus.CONFIRMED


def test_out_for_delivery_keyword_beats_delivered_keyword():
    assert fold_status("Shipment out for final delivery", {}) is OrderStatus.OUT_FOR_DELIVERY


def test_partner_scan_codes():
    assert fold_status("DLV", OVERSEAS_STATUS_MAP) is OrderStatus.DELIVERED
    assert fold_status("pkd", OVERSEAS_STATUS_MAP) is OrderStatus.PICKED_UP
    assert fold_status("DLV", {}) is OrderStatus.PENDING


def test_status_table_normalizes_keys():
    table = status_table({" Picked Up ": OrderStatus.PICKED_UP})
    assert table == {"picked up": OrderStatus.PICKED_UP}


def test_every_table_maps_into_internal_vocabulary():
    for table in (DELHIVERY_STATUS_MAP, NIMBUSPOST_STATUS_MAP, OVERSEAS_STATUS_MAP):
        assert all(isinstance(value, OrderStatus) for value in table.values())
        assert all(key == key.strip().lower() for key in table)


@pytest.mark.parametrize(
    "raw, table",
    [
        ("Undelivered", DELHIVERY_STATUS_MAP),
        ("undelivered", NIMBUSPOST_STATUS_MAP),
        ("UNDELIVERED", OVERSEAS_STATUS_MAP),
        ("Shipment undelivered - consignee not available", {}),
        ("Not delivered, address incomplete", {}),
    ],
)
def test_failed_delivery_attempt_is_not_terminal(raw, table):
    status = fold_status(raw, table)
    assert status is OrderStatus.IN_TRANSIT
    assert not status.is_terminal
