import pytest

HEADER = (
    "pickup_cluster_id,pickup_centroid_lat,pickup_centroid_lon,pickup_radius_meters,"
    "dropoff_cluster_id,dropoff_centroid_lat,dropoff_centroid_lon,dropoff_radius_meters,probability_%"
)


def make_csv(*lines: str) -> str:
    return "\n".join((HEADER,) + lines) + "\n"


@pytest.fixture
def two_flow_csv():
    """Two flows out of the same lower-Manhattan pickup."""
    return make_csv(
        "7,40.712800,-74.006000,600,4,40.730000,-73.935000,450,65.0",
        "7,40.712800,-74.006000,600,5,40.650000,-73.950000,,20.0",
    )


@pytest.fixture
def multi_zone_csv():
    return make_csv(
        "1,40.7128,-74.006,600,4,40.73,-73.935,450,65.0",
        "1,40.7128,-74.006,600,5,40.65,-73.95,500,20.0",
        "2,40.758,-73.9855,400,1,40.7128,-74.006,600,42.5",
        "2,40.758,-73.9855,400,3,40.6413,-73.7781,900,35.0",
        "3,40.6413,-73.7781,900,2,40.758,-73.9855,400,55.0",
    )
