from quill.dates import DateConfig, DateFormat, DateFormatter


def test_parse_default_format_in_utc():
    formatter = DateFormatter()
    assert formatter.parse_timestamp("2024-01-02T00:00:00.000Z") == 1704153600.0


def test_parse_failure_returns_none():
    assert DateFormatter().parse("not a date") is None


def test_parse_applies_time_zone():
    fmt = DateFormat("%Y-%m-%d %H:%M", time_zone="Europe/Budapest")
    parsed = DateFormatter().parse("2024-01-02 01:00", fmt)
    assert parsed.timestamp() == 1704153600.0


def test_unknown_time_zone_falls_back_to_utc():
    fmt = DateFormat("%Y-%m-%d", time_zone="Mars/Olympus")
    assert DateFormatter().parse_timestamp("2024-01-02", fmt) == 1704153600.0


def test_config_from_dict():
    config = DateConfig.from_dict(
        {
            "input": {"format": "%d.%m.%Y", "timeZone": "UTC"},
            "output": {"year": "%Y", "full": {"format": "%Y-%m-%d %H:%M", "time_zone": "UTC"}},
        }
    )
    assert config.input == DateFormat("%d.%m.%Y", "UTC")
    assert config.output["year"] == DateFormat("%Y")
    assert DateConfig.from_dict(None) == DateConfig()


def test_context_lists_named_formats():
    formatter = DateFormatter(
        DateConfig(output={"year": DateFormat("%Y"), "day": DateFormat("%d")})
    )
    context = formatter.context(1704153600.0)
    assert context == {
        "timestamp": 1704153600.0,
        "iso8601": "2024-01-02T00:00:00Z",
        "formats": {"day": "02", "year": "2024"},
    }
