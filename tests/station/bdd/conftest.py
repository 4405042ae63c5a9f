"""Shared BDD steps for station scan verification."""

import pytest
from pytest_bdd import parsers, then


@pytest.fixture()
def scans():
    """Results of the scans made in a scenario."""
    return []


@then("the bin is verified")
def bin_verified(engine):
    assert engine.is_verified


@then("the bin is not verified")
def bin_not_verified(engine):
    assert not engine.is_verified


@then("a label can be printed")
def label_can_print(engine):
    assert engine.can_print


@then("a label cannot be printed")
def label_cannot_print(engine):
    assert not engine.can_print


@then(parsers.cfparse('the last scan is rejected as "{outcome}"'))
def last_scan_rejected(scans, outcome):
    assert not scans[-1].accepted
    assert scans[-1].outcome.value == outcome
