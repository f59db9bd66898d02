"""Unit tests for the LabelService and widget relabeling."""

import json

import pytest

from tbmirror.application.services import LabelService, ReferenceResolver
from tbmirror.application.services.label_service import relabel_widget
from tbmirror.domain.entities import AttributeScope, EntityKind
from tbmirror.domain.exceptions import EntityNotFoundError

LABELS = {"temp": "Temperature", "hum": "Humidity", "relay": "Main relay"}


def test_rpc_widget_title_from_value_key():
    widget = {"type": "rpc", "config": {"title": "Switch", "settings": {"valueKey": "relay"}}}
    relabel_widget(widget, LABELS)
    assert widget["config"]["title"] == "Main relay"


def test_rpc_widget_keeps_title_without_mapping():
    widget = {"type": "rpc", "config": {"title": "Switch", "settings": {"valueAttribute": "x"}}}
    relabel_widget(widget, LABELS)
    assert widget["config"]["title"] == "Switch"


def test_single_datasource_sets_title():
    widget = {
        "type": "latest",
        "config": {"title": "Card", "datasources": [{"dataKeys": [{"name": "temp", "label": "t"}]}]},
    }
    relabel_widget(widget, LABELS)
    assert widget["config"]["title"] == "Temperature"


def test_multiple_datasources_relabel_every_key():
    widget = {
        "type": "timeseries",
        "config": {
            "title": "Chart",
            "datasources": [
                {"dataKeys": [{"name": "temp", "label": "t"}, {"name": "unknown", "label": "u"}]},
                {"dataKeys": [{"name": "hum", "label": "h"}]},
            ],
        },
    }
    relabel_widget(widget, LABELS)
    keys = [k for ds in widget["config"]["datasources"] for k in ds["dataKeys"]]
    assert [k["label"] for k in keys] == ["Temperature", "u", "Humidity"]
    assert widget["config"]["title"] == "Chart"


def test_other_widget_types_untouched():
    widget = {
        "type": "static",
        "config": {"title": "Logo", "datasources": [{"dataKeys": [{"name": "temp"}]}]},
    }
    relabel_widget(widget, LABELS)
    assert widget["config"]["title"] == "Logo"


@pytest.mark.asyncio
async def test_label_updates_dashboard(platform, session):
    dashboard = platform.add(
        EntityKind.DASHBOARD,
        {
            "title": "Plant",
            "name": "Plant",
            "configuration": {
                "widgets": {
                    "w1": {"type": "rpc", "config": {"title": "?", "settings": {"valueKey": "relay"}}}
                }
            },
        },
    )
    device = platform.add_device(
        "Pump-1", attributes={AttributeScope.SERVER: {"LABELS": json.dumps(LABELS)}}
    )
    service = LabelService(platform, ReferenceResolver(platform))

    await service.label(session, "Plant", "Pump-1")

    update = platform.called("update")[0][2]
    assert update["id"] == dashboard["id"]
    assert update["configuration"]["widgets"]["w1"]["config"]["title"] == "Main relay"
    assert device["name"] == "Pump-1"


@pytest.mark.asyncio
async def test_label_requires_labels_attribute(platform, session):
    platform.add(EntityKind.DASHBOARD, {"title": "Plant", "name": "Plant", "configuration": {}})
    platform.add_device("Pump-1")
    service = LabelService(platform, ReferenceResolver(platform))

    with pytest.raises(EntityNotFoundError, match="LABELS"):
        await service.label(session, "Plant", "Pump-1")
    assert platform.called("update") == []


@pytest.mark.asyncio
async def test_labels_attribute_must_be_a_mapping(platform, session):
    platform.add(EntityKind.DASHBOARD, {"title": "Plant", "name": "Plant", "configuration": {}})
    platform.add_device("Pump-1", attributes={AttributeScope.SHARED: {"LABELS": "[1, 2]"}})
    service = LabelService(platform, ReferenceResolver(platform))

    with pytest.raises(ValueError, match="not a mapping"):
        await service.label(session, "Plant", "Pump-1")
