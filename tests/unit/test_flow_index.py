from unittest.mock import patch

import flow_index
from flow_index import FlowRecord, flow_table, flows_for, top_flows, zone_flows
from flow_parser import parse_csv_text
from pickup_zones import build_zones


def _row(dropoff_id, prob, pickup=(40.7128, -74.006), dropoff=(40.73, -73.935), **extra):
    row = {
        "pickup_centroid_lat": pickup[0],
        "pickup_centroid_lon": pickup[1],
        "dropoff_cluster_id": dropoff_id,
        "dropoff_centroid_lat": dropoff[0],
        "dropoff_centroid_lon": dropoff[1],
        "probability_%": prob,
    }
    row.update(extra)
    return row


def _zone_for(rows):
    index = build_zones(rows)
    return next(iter(index)), index


def test_flows_sorted_by_probability_descending():
    rows = [_row(1, 10.0), _row(2, 70.0), _row(3, 20.0)]
    zone, index = _zone_for(rows)
    flows = flows_for(zone, index.rows)
    assert [f.probability for f in flows] == [70.0, 20.0, 10.0]


def test_equal_probabilities_keep_input_order():
    rows = [_row("a", 30.0), _row("b", 50.0), _row("c", 30.0), _row("d", 30.0)]
    zone, index = _zone_for(rows)
    assert [f.dropoff_id for f in flows_for(zone, index.rows)] == ["b", "a", "c", "d"]


def test_only_rows_from_the_zone_are_returned():
    rows = [_row(1, 10.0), _row(2, 80.0, pickup=(40.758, -73.9855))]
    index = build_zones(rows)
    first = next(iter(index))
    assert [f.dropoff_id for f in flows_for(first, index.rows)] == [1]


def test_pickup_match_uses_epsilon_per_axis():
    rows = [
        _row(1, 10.0),
        _row(2, 20.0, pickup=(40.7128 + 5e-7, -74.006 - 5e-7)),
        _row(3, 30.0, pickup=(40.7128 + 5e-6, -74.006)),
        _row(4, 40.0, pickup=(40.7128, -74.006 + 5e-6)),
    ]
    zone, index = _zone_for(rows[:1])
    assert [f.dropoff_id for f in flows_for(zone, rows)] == [2, 1]


def test_invalid_dropoff_coordinates_are_excluded():
    rows = [
        _row(1, 10.0),
        _row(2, 90.0, dropoff=("abc", -73.9)),
        _row(3, 50.0, dropoff=(40.7, None)),
    ]
    zone, index = _zone_for(rows)
    flows = flows_for(zone, index.rows)
    assert [f.dropoff_id for f in flows] == [1]
    # the raw store is untouched
    assert len(index.rows) == 3


def test_unparsable_pickup_rows_never_match():
    rows = [_row(1, 10.0), _row(2, 99.0, pickup=(40.7128, "abc"))]
    zone, index = _zone_for(rows)
    assert [f.dropoff_id for f in flows_for(zone, index.rows)] == [1]


def test_flow_defaults():
    row = {
        "pickup_lat": 40.7128,
        "pickup_lon": -74.006,
        "dropoff_lat": 40.73,
        "dropoff_lon": -73.935,
    }
    zone, index = _zone_for([row])
    flow = flows_for(zone, index.rows)[0]
    assert flow == FlowRecord(dropoff_lat=40.73, dropoff_lon=-73.935, dropoff_radius=500.0, probability=0.0)
    assert not flow.has_dropoff_id


def test_probability_synonym_and_radius():
    rows = [_row(1, None, probability=12.5, dropoff_radius=300)]
    zone, index = _zone_for(rows)
    flow = flows_for(zone, index.rows)[0]
    assert flow.probability == 12.5
    assert flow.dropoff_radius == 300.0


def test_dropoff_id_minus_one_counts_as_missing():
    assert not FlowRecord(40.7, -73.9, 500.0, 10.0, dropoff_id=-1).has_dropoff_id
    assert FlowRecord(40.7, -73.9, 500.0, 10.0, dropoff_id=0).has_dropoff_id


def test_top_flows_spans_all_zones(multi_zone_csv):
    index = build_zones(parse_csv_text(multi_zone_csv))
    pairs = top_flows(index, limit=3)
    assert [flow.probability for _, flow in pairs] == [65.0, 55.0, 42.5]
    assert [zone.id for zone, _ in pairs] == [1, 3, 2]


def test_flow_table_matches_flows_for_across_key_boundaries():
    # 40.7128004 and 40.7128006 round to neighbouring keys but are within epsilon
    rows = [
        _row(1, 10.0, pickup=(40.7128004, -74.006)),
        _row(2, 30.0, pickup=(40.7128006, -74.006)),
        _row(3, 20.0, pickup=(40.7128004, -74.0060004)),
        _row(4, 50.0, pickup=(40.758, -73.9855)),
        _row(5, 90.0, pickup=(40.7128004, "abc")),
        _row(6, 40.0, pickup=(40.7128006, -74.006), dropoff=(None, -73.9)),
    ]
    index = build_zones(rows)
    assert len(index) == 3

    table = flow_table(index)
    for zone in index:
        assert table[zone.key] == flows_for(zone, index.rows)
    assert all(table[zone.key] for zone in index)


def test_flow_table_is_built_once_per_index(multi_zone_csv):
    index = build_zones(parse_csv_text(multi_zone_csv))
    with patch("flow_index._to_flow", wraps=flow_index._to_flow) as to_flow:
        table = flow_table(index)
        top_flows(index, limit=10)
        top_flows(index, limit=3)
        zone_flows(index, next(iter(index)))
    assert flow_table(index) is table
    assert to_flow.call_count == len(index.rows)


def test_zone_flows_returns_a_copy(multi_zone_csv):
    index = build_zones(parse_csv_text(multi_zone_csv))
    zone = next(iter(index))
    flows = zone_flows(index, zone)
    flows.clear()
    assert [f.probability for f in zone_flows(index, zone)] == [65.0, 20.0]
