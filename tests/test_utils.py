import ipaddress
import zlib
from dataclasses import dataclass

import pytest

from rmqclient.utils import (
    StringUnique,
    UniqueItem,
    UniqueSet,
    client_ip4,
    fake_ip,
    file_read_all,
    get_address_by_bytes,
    hash_string,
    local_ip,
    uncompress,
    write_to_file,
)


@dataclass
class _Broker(UniqueItem):
    name: str

    def unique_id(self):
        return self.name


def test_uncompress_round_trip():
    original = "hello, go"
    assert uncompress(zlib.compress(original.encode())) == original.encode()


def test_uncompress_returns_invalid_input_unchanged():
    data = b"not compressed at all"
    assert uncompress(data) == data


def test_local_ip_is_empty_or_dotted_ipv4():
    ip = local_ip()
    if ip:
        addr = ipaddress.IPv4Address(ip)
        assert not addr.is_loopback
    else:
        assert ip == ""


def test_client_ip4_matches_local_ip():
    try:
        raw = client_ip4()
    except OSError:
        assert local_ip() == ""
    else:
        assert len(raw) == 4
        assert get_address_by_bytes(raw) == local_ip()


def test_get_address_by_bytes():
    assert get_address_by_bytes(bytes([10, 175, 8, 149])) == "10.175.8.149"
    assert get_address_by_bytes(bytes([10, 93, 233, 58, 0])) == "10.93.233.58"


def test_fake_ip_has_four_digit_bytes():
    value = fake_ip()
    assert len(value) == 4
    assert value.isdigit()


def test_hash_string_known_values():
    assert hash_string("") == 0
    assert hash_string("abc") == 96354


def test_hash_string_wraps_to_signed_32_bit():
    value = hash_string("a considerably longer topic name used for hashing")
    assert -(2**31) <= value < 2**31
    assert hash_string("TopicTest") == hash_string("TopicTest")


def test_write_and_read_file(tmp_path):
    target = tmp_path / "nested" / "dir" / "offsets.json"
    write_to_file(target, b"first")
    assert file_read_all(target) == b"first"
    assert not (tmp_path / "nested" / "dir" / "offsets.json.tmp").exists()


def test_write_to_file_keeps_backup(tmp_path):
    target = tmp_path / "offsets.json"
    write_to_file(target, b"old")
    write_to_file(target, b"new")
    assert target.read_bytes() == b"new"
    assert (tmp_path / "offsets.json.bak").read_bytes() == b"old"


def test_write_to_file_parent_is_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"x")
    with pytest.raises(NotADirectoryError):
        write_to_file(blocker / "data.json", b"y")


def test_file_read_all_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_read_all(tmp_path / "missing")


def test_unique_set_add_and_get():
    s = UniqueSet()
    s.add(StringUnique("a"))
    s.add_kv("k", "v")
    s.add(StringUnique("a"))
    assert len(s) == 2
    assert s.get("k") == "v"
    assert s.get("a").unique_id() == "a"
    assert s.get("missing") is None
    assert "k" in s


def test_unique_set_empty_json():
    assert UniqueSet().to_json() == "[]"


def test_unique_set_strings_json_sorted():
    s = UniqueSet()
    s.add(StringUnique("b"))
    s.add(StringUnique("a"))
    assert s.to_json() == '["a","b"]'


def test_unique_set_mixed_items_json():
    s = UniqueSet()
    s.add(_Broker("b"))
    s.add(StringUnique("a"))
    assert s.to_json() == '["a",{"name":"b"}]'


def test_unique_set_iterates_items():
    s = UniqueSet()
    s.add(_Broker("x"))
    s.add(_Broker("y"))
    assert sorted(item.unique_id() for item in s) == ["x", "y"]