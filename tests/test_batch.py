from __future__ import annotations

import pytest

from svm_provisioner.models import FIELD_NAMES
from svm_provisioner.resolver.batch import BATCH_USAGE, parse_batch, split_list
from svm_provisioner.resolver.resolver import build_request
from svm_provisioner.util.errors import ConfigurationError

from conftest import SAMPLE_BATCH


def test_sample_batch_maps_fields_positionally() -> None:
    values = parse_batch(SAMPLE_BATCH)

    assert values["cluster"] == "c1"
    assert values["svm"] == "svmA"
    assert values["aggregate"] == "aggr1"
    assert values["volume_name"] == "vol1"
    assert values["volume_size"] == "100g"
    assert values["lif_name"] == "lif1"
    assert values["lif_address"] == "10.0.0.5"
    assert values["lif_netmask"] == "255.255.255.0"
    assert values["home_node"] == "node1"
    assert values["home_port"] == "e0c"
    assert values["cifs_server"] == "SMBX"
    assert values["ad_domain"] == "dom.local"
    assert values["dns_servers"] == ("1.1.1.1", "2.2.2.2")


def test_sample_batch_builds_request_with_features_off() -> None:
    request = build_request(parse_batch(SAMPLE_BATCH))

    assert request.dns_servers == ("1.1.1.1", "2.2.2.2")
    assert request.search_domains == ()
    assert request.features.nfs_enabled is False
    assert request.features.acl_enabled is False


@pytest.mark.parametrize("count", [1, 12, 14])
def test_wrong_field_count_is_rejected(count: int) -> None:
    text = ",".join(["x"] * count)
    with pytest.raises(ConfigurationError) as excinfo:
        parse_batch(text)
    assert f"has {count} field(s)" in str(excinfo.value)
    assert "cluster" in str(excinfo.value)


def test_usage_lists_fields_in_batch_order() -> None:
    assert len(FIELD_NAMES) == 13
    assert BATCH_USAGE.index("cluster") < BATCH_USAGE.index("svm") < BATCH_USAGE.index("dns-servers")


def test_empty_position_is_kept_for_validation() -> None:
    values = parse_batch("c1,,aggr1,vol1,100g,lif1,10.0.0.5,24,node1,e0c,SMBX,dom.local,1.1.1.1")
    assert values["svm"] == ""
    with pytest.raises(ConfigurationError) as excinfo:
        build_request(values)
    assert excinfo.value.missing_fields == ["svm"]


def test_split_list_trims_and_drops_empty_entries() -> None:
    assert split_list(" a ; b,,c ;") == ("a", "b", "c")
    assert split_list("") == ()
    assert split_list(None) == ()


def test_request_round_trips_through_batch_string() -> None:
    request = build_request(parse_batch(SAMPLE_BATCH))
    again = build_request(parse_batch(request.as_batch_string()))
    assert again == request
