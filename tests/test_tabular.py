import pytest

from codegraph.errors import ConfigurationError
from codegraph.export.tabular import (
    TabularDecodeError,
    decode_records,
    decode_value,
    encode_records,
    encode_value,
    split_row,
)

DELIMS = [",", "\t", "|"]

TRICKY_RECORDS = [
    {
        "key": "rust:fn:calculate_sum:src_lib_rs:10-15",
        "text": 'say "hi", then\tleave|now',
        "multi": "line one\nline two",
        "padded": "  spaced  ",
        "empty": "",
        "lookalikes": "null",
        "numeric": "42",
        "bracket": "[not json",
        "count": 7,
        "ratio": 0.25,
        "flag": True,
        "nothing": None,
        "deps": ["a,b", "c|d"],
        "meta": {"nested": [1, "x\ty"]},
        "unicode": "naïve café",
        "leading_zero": "007",
    },
    {
        "key": "src_lib_rs-new_feature-fn-abc123",
        "text": "plain",
        "multi": "single",
        "padded": "x",
        "empty": "y",
        "lookalikes": "true",
        "numeric": "-1.5e3",
        "bracket": "{",
        "count": -3,
        "ratio": 1e-9,
        "flag": False,
        "nothing": None,
        "deps": [],
        "meta": {},
        "unicode": "日本",
        "leading_zero": "a[0]",
    },
]


class TestEncodeValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "true"),
            (False, "false"),
            (3, "3"),
            ("plain", "plain"),
            ("", '""'),
            ("null", '"null"'),
            ("12", '"12"'),
            ("a,b", '"a,b"'),
            (["x", 1], '["x",1]'),
        ],
    )
    def test_comma(self, value, expected):
        assert encode_value(value, ",") == expected

    def test_delimiter_specific_quoting(self):
        assert encode_value("a,b", "|") == "a,b"
        assert encode_value("a|b", "|") == '"a|b"'


class TestRoundTrip:
    @pytest.mark.parametrize("delimiter", DELIMS)
    def test_tricky_values(self, delimiter):
        text = encode_records(TRICKY_RECORDS, delimiter=delimiter)
        assert decode_records(text, delimiter) == TRICKY_RECORDS

    @pytest.mark.parametrize("delimiter", DELIMS)
    def test_one_line_per_record(self, delimiter):
        text = encode_records(TRICKY_RECORDS, delimiter=delimiter)
        assert len(text.split("\n")) == 1 + len(TRICKY_RECORDS)

    def test_explicit_fields_fill_nulls(self):
        text = encode_records([{"a": 1}], fields=["a", "b"])
        assert text == "a,b\n1,null"
        assert decode_records(text) == [{"a": 1, "b": None}]

    def test_header_only(self):
        assert decode_records("a,b\n") == []


class TestDecode:
    def test_split_row_keeps_json_cells(self):
        cells = split_row('x,"a,b",[1,"2,3"],{"k":"v,w"},y', ",")
        assert cells == ["x", '"a,b"', '[1,"2,3"]', '{"k":"v,w"}', "y"]

    def test_trailing_empty_cell(self):
        assert split_row("a,", ",") == ["a", ""]

    def test_decode_value(self):
        assert decode_value("null") is None
        assert decode_value("3") == 3
        assert decode_value("abc") == "abc"
        assert decode_value('"3"') == "3"

    def test_cell_count_mismatch(self):
        with pytest.raises(TabularDecodeError):
            decode_records("a,b\n1,2,3")

    def test_unterminated_string(self):
        with pytest.raises(TabularDecodeError):
            decode_records('a\n"oops')

    def test_garbage_after_quoted_cell(self):
        with pytest.raises(TabularDecodeError):
            decode_records('a,b\n"x"y,1')

    def test_missing_header(self):
        with pytest.raises(TabularDecodeError):
            decode_records("")

    def test_bad_delimiter(self):
        with pytest.raises(ConfigurationError):
            encode_records([{"a": 1}], delimiter=";")
        with pytest.raises(ConfigurationError):
            decode_records("a\n1", delimiter=";")
