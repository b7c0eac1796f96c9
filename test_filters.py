#!/usr/bin/env python3
"""
Tests for filter population and description.
"""

import unittest
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from traffic_config_manager.core.filters import (
    BOOL,
    FLOAT64,
    INT,
    INT8,
    INT64,
    STRING,
    TIME,
    TIME_LABEL,
    UINT8,
    FilterField,
    IndexFilter,
    ListOf,
    OptionalOf,
    Scalar,
    boolish,
    describe_fields,
    populate_filter,
    to_unix_millis,
)
from traffic_config_manager.errors import ValidationError
from traffic_config_manager.object_types import ObjectType
from traffic_config_manager.objects import (
    AccessToken,
    AccessTokenFilter,
    Proxy,
    ProxyFilter,
    Route,
    RouteFilter,
    User,
    UserFilter,
)


@dataclass
class SampleFilter(IndexFilter):
    s: Optional[str] = None
    ss: Optional[List[str]] = None
    i: Optional[int] = None
    is_: Optional[List[int]] = None
    small: Optional[int] = None
    byte: Optional[int] = None
    f: Optional[float] = None
    b: Optional[bool] = None
    bs: Optional[List[bool]] = None
    when: Optional[datetime] = None
    maybe: Optional[int] = None

    FIELDS = (
        FilterField("s", STRING, json_name="S"),
        FilterField("ss", ListOf(STRING), json_name="Ss"),
        FilterField("i", INT, json_name="I"),
        FilterField("is_", ListOf(INT), json_name="Is"),
        FilterField("small", INT8),
        FilterField("byte", UINT8),
        FilterField("f", FLOAT64, json_name="F"),
        FilterField("b", BOOL, json_name="B"),
        FilterField("bs", ListOf(BOOL), json_name="Bs"),
        FilterField("when", TIME),
        FilterField("maybe", OptionalOf(INT64)),
    )


@dataclass
class BrokenFilter(IndexFilter):
    c: Optional[complex] = None

    FIELDS = (FilterField("c", Scalar("complex128")),)


class TestBoolish(unittest.TestCase):
    """Test lenient boolean parsing."""

    def test_truthy_values(self):
        for value in ["yes", "y", "1", "true", "t", "YES", "Y", "True", "T", "tRuE"]:
            with self.subTest(value=value):
                self.assertTrue(boolish(value))

    def test_everything_else_is_false(self):
        for value in ["no", "n", "0", "false", "f", "", "yess", "on", "2"]:
            with self.subTest(value=value):
                self.assertFalse(boolish(value))


class TestPopulateFilter(unittest.TestCase):
    """Test populate_filter conversions."""

    def test_scalars_and_slices(self):
        f = populate_filter(
            SampleFilter,
            {
                "S": "hello",
                "Ss": "a,b,c",
                "I": "-42",
                "Is": "1,2,3",
                "F": "3e10",
                "B": "yes",
                "Bs": "yes,no,0,true,false",
            },
        )

        self.assertEqual(f.s, "hello")
        self.assertEqual(f.ss, ["a", "b", "c"])
        self.assertEqual(f.i, -42)
        self.assertEqual(f.is_, [1, 2, 3])
        self.assertEqual(f.f, 3e10)
        self.assertTrue(f.b)
        self.assertEqual(f.bs, [True, False, False, True, False])

    def test_custom_slice_separator(self):
        f = populate_filter(SampleFilter, {"Ss": "a,b|c"}, slice_sep="|")
        self.assertEqual(f.ss, ["a,b", "c"])

    def test_time_is_milliseconds_since_epoch(self):
        f = populate_filter(SampleFilter, {"when": "1500000000123"})
        self.assertEqual(f.when.tzinfo, timezone.utc)
        self.assertEqual(to_unix_millis(f.when), 1500000000123)
        self.assertEqual(f.when.year, 2017)

    def test_time_out_of_range(self):
        with self.assertRaises(ValidationError) as ctx:
            populate_filter(SampleFilter, {"when": "300000000000000"})
        self.assertIn("out of range", str(ctx.exception))

    def test_optional_is_set(self):
        f = populate_filter(SampleFilter, {"maybe": "7"})
        self.assertEqual(f.maybe, 7)
        self.assertIsNone(populate_filter(SampleFilter, {}).maybe)

    def test_unknown_attributes_are_ignored(self):
        f = populate_filter(SampleFilter, {"nope": "1", "S": "x"})
        self.assertEqual(f.s, "x")

    def test_lookup_falls_back_to_attribute_name(self):
        f = populate_filter(SampleFilter, {"small": "5"})
        self.assertEqual(f.small, 5)

    def test_bad_numbers_raise_validation_error(self):
        cases = [
            {"I": "ten"},
            {"I": "1.5"},
            {"Is": "1,x,3"},
            {"F": "nan-ish"},
            {"small": "128"},
            {"byte": "-1"},
            {"byte": "256"},
            {"when": "yesterday"},
            {"when": "300000000000000"},
        ]
        for attrs in cases:
            with self.subTest(attrs=attrs):
                with self.assertRaises(ValidationError) as ctx:
                    populate_filter(SampleFilter, attrs)
                self.assertIn("Unable to set", str(ctx.exception))

    def test_unsupported_kind_is_a_type_error(self):
        with self.assertRaises(TypeError):
            populate_filter(BrokenFilter, {"c": "1+2j"})

    def test_empty_filter(self):
        self.assertTrue(populate_filter(SampleFilter, {}).is_empty())
        self.assertFalse(populate_filter(SampleFilter, {"S": ""}).is_empty())


class TestDescribeFields(unittest.TestCase):
    """Test field descriptions for --show-filter-fields."""

    def test_labels(self):
        fields = describe_fields(SampleFilter)
        self.assertEqual(fields["S"], "string")
        self.assertEqual(fields["Ss"], "slice<string>")
        self.assertEqual(fields["I"], "int")
        self.assertEqual(fields["Is"], "slice<int>")
        self.assertEqual(fields["small"], "int8")
        self.assertEqual(fields["Bs"], "slice<bool>")
        self.assertEqual(fields["when"], TIME_LABEL)
        self.assertEqual(fields["maybe"], "int64")

    def test_unsupported_kind_is_a_type_error(self):
        with self.assertRaises(TypeError):
            describe_fields(BrokenFilter)

    def test_every_builtin_filter_describes(self):
        for ot in ObjectType:
            with self.subTest(object_type=str(ot)):
                fields = describe_fields(ot.filter_cls)
                self.assertTrue(fields)
                self.assertIn(ot.key_field, fields)

    def test_access_token_time_fields(self):
        fields = describe_fields(AccessTokenFilter)
        self.assertEqual(fields["created_before"], TIME_LABEL)
        self.assertEqual(fields["created_after"], TIME_LABEL)


class TestFilterMatching(unittest.TestCase):
    """Test in-memory matching of built-in filters."""

    def test_proxy_domain_keys_requires_all(self):
        proxy = Proxy(proxy_key="p1", name="p", domain_keys=["d1", "d2"])
        self.assertTrue(ProxyFilter(domain_keys=["d1"]).matches(proxy))
        self.assertTrue(ProxyFilter(domain_keys=["d1", "d2"]).matches(proxy))
        self.assertFalse(ProxyFilter(domain_keys=["d1", "d3"]).matches(proxy))

    def test_route_path_prefix(self):
        route = Route(route_key="r1", path="/api/users")
        self.assertTrue(RouteFilter(path_prefix="/api").matches(route))
        self.assertFalse(RouteFilter(path_prefix="/web").matches(route))
        self.assertFalse(RouteFilter(path="/api").matches(route))

    def test_user_active(self):
        active = User(user_key="u1")
        gone = User(user_key="u2", deleted_at="2020-01-01T00:00:00Z")
        f = populate_filter(UserFilter, {"active": "true"})
        self.assertTrue(f.matches(active))
        self.assertFalse(f.matches(gone))

    def test_access_token_created_window(self):
        token = AccessToken(access_token_key="a1", created_at="2017-07-14T02:40:00Z")
        before = populate_filter(AccessTokenFilter, {"created_before": "1600000000000"})
        after = populate_filter(AccessTokenFilter, {"created_after": "1600000000000"})
        self.assertTrue(before.matches(token))
        self.assertFalse(after.matches(token))

    def test_to_dict_skips_unset_fields(self):
        f = populate_filter(AccessTokenFilter, {"user_key": "u1", "created_after": "0"})
        self.assertEqual(
            f.to_dict(),
            {"user_key": "u1", "created_after": "1970-01-01T00:00:00+00:00"},
        )


if __name__ == "__main__":
    unittest.main()
