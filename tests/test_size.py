import pytest

from ctfixture.errors import ConfigurationError
from ctfixture.size import Size, Unit


@pytest.mark.unit
@pytest.mark.parametrize(
    "spec, expected",
    [
        ("100", 100),
        ("100b", 100),
        ("4k", 4096),
        ("512m", 512 * 1024**2),
        ("64mb", 64 * 1024**2),
        ("1.5g", int(1.5 * 1024**3)),
        (" 2G ", 2 * 1024**3),
    ],
)
def test_parse_size(spec, expected):
    assert Size.parse(spec).to_bytes() == expected


@pytest.mark.unit
@pytest.mark.parametrize("spec", ["", "m", "12x", "12tb", "-1m", "1.2.3m"])
def test_parse_invalid_size(spec):
    with pytest.raises(ConfigurationError):
        Size.parse(spec)


@pytest.mark.unit
def test_constructors_and_conversion():
    assert int(Size.from_kb(2)) == 2048
    assert Size.from_gb(1).unit is Unit.GB
    assert str(Size.from_mb(256)) == "256m"
    assert Size.coerce(1024) == Size.from_bytes(1024)
    assert Size.coerce("1k") == Size(1.0, Unit.KB)


@pytest.mark.unit
def test_coerce_rejects_other_types():
    with pytest.raises(ConfigurationError):
        Size.coerce(1.5)
