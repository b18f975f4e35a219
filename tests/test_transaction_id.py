"""Tests for the stateless B scan C partner transaction id."""

import re
from datetime import datetime

from merchantrelay.services.relay.service import build_partner_transaction_id, build_transaction_id


def test_transaction_id_layout():
    """Transaction id is biller id, 14-digit timestamp, fixed suffix."""

    now = datetime(2023, 12, 31, 23, 59, 58)

    assert build_transaction_id("BILLER", now) == "BILLER20231231235958ABCDEF"


def test_partner_transaction_id_repeats_biller_prefix():
    """Partner id prefixes the transaction id with the biller id again."""

    biller_id = "010556109100001"
    partner_id = build_partner_transaction_id(biller_id, datetime(2024, 1, 2, 3, 4, 5))

    assert re.fullmatch(rf"{biller_id}{biller_id}\d{{14}}[A-Z]{{6}}", partner_id)
    assert partner_id.endswith("20240102030405ABCDEF")


def test_same_second_collides():
    """Ids only have one-second resolution, so same-second calls collide."""

    now = datetime(2024, 1, 2, 3, 4, 5)
    later_same_second = now.replace(microsecond=999_999)

    assert build_partner_transaction_id("B1", now) == build_partner_transaction_id("B1", later_same_second)
