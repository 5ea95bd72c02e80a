# neste — nested text templates on top of Jinja2
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Tests for neste.formatters."""

from io import BytesIO

import pytest

from neste import Manager
from neste.formatters import (
    BUILTIN_FORMATTERS,
    add_slashes_formatter,
    cap_first_formatter,
    html_formatter,
    merge_formatters,
    value_bytes,
)


def _run(formatter, *values, name="test"):
    buf = BytesIO()
    formatter(buf, name, *values)
    return buf.getvalue()


class TestValueBytes:
    def test_single_bytes_used_as_is(self):
        assert value_bytes(b"\xff raw") == b"\xff raw"

    def test_strings_concatenated(self):
        assert value_bytes("<a>", "b", "</a>") == b"<a>b</a>"

    def test_space_between_non_strings(self):
        assert value_bytes(1, 2) == b"1 2"
        assert value_bytes("n=", 1) == b"n=1"

    def test_unicode_encoded_as_utf8(self):
        assert value_bytes("ǿ") == "ǿ".encode("utf-8")


class TestHtml:
    def test_escapes_markup(self):
        assert _run(html_formatter, "<hack>", "\\&hack\\", "</hack>") == (
            b"&lt;hack&gt;\\&amp;hack\\&lt;/hack&gt;"
        )

    def test_escapes_quotes(self):
        out = _run(html_formatter, "\"x\" 'y'")
        assert b'"' not in out
        assert b"'" not in out

    def test_alias(self):
        assert BUILTIN_FORMATTERS["e"] is BUILTIN_FORMATTERS["html"]


class TestAddSlashes:
    def test_double_quotes_escaped(self):
        assert _run(add_slashes_formatter, '"I\'m using neste"') == b'\\"I\'m using neste\\"'

    def test_single_quote_and_backslash_untouched(self):
        assert _run(add_slashes_formatter, "it's a \\ path") == b"it's a \\ path"

    def test_one_backslash_per_quote(self):
        out = _run(add_slashes_formatter, 'a"b"c')
        assert out.count(b"\\") == 2
        assert out == b'a\\"b\\"c'


class TestCapFirst:
    def test_ascii(self):
        assert _run(cap_first_formatter, "neste") == b"Neste"

    def test_unicode(self):
        assert _run(cap_first_formatter, "ǿxy") == "Ǿxy".encode("utf-8")

    def test_empty(self):
        assert _run(cap_first_formatter, "") == b""

    def test_only_first_character(self):
        assert _run(cap_first_formatter, "hello world") == b"Hello world"

    def test_malformed_lead_byte_kept(self):
        assert _run(cap_first_formatter, b"\xffabc") == b"\xffabc"

    def test_no_single_upper_form(self):
        assert _run(cap_first_formatter, "ßa") == "ßa".encode("utf-8")


class TestMerge:
    def test_user_formatter_wins(self):
        def custom(writer, name, *values):
            writer.write(b"custom")

        merged = merge_formatters({"e": html_formatter}, {"e": custom})
        assert merged["e"] is custom

    def test_missing_user_table(self):
        merged = merge_formatters(BUILTIN_FORMATTERS, None)
        assert dict(merged) == dict(BUILTIN_FORMATTERS)

    def test_user_table_not_modified(self):
        user = {"shout": add_slashes_formatter}
        merge_formatters(BUILTIN_FORMATTERS, user)
        assert user == {"shout": add_slashes_formatter}

    def test_result_is_read_only(self):
        merged = merge_formatters(BUILTIN_FORMATTERS)
        with pytest.raises(TypeError):
            merged["x"] = html_formatter

    def test_none_formatter_rejected(self):
        with pytest.raises(ValueError):
            merge_formatters(BUILTIN_FORMATTERS, {"bad": None})


class TestFormattersInTemplates:
    def test_builtins(self):
        source = (
            "\n"
            "{{ unesc1|html(unesc2, unesc3) }}\n"
            "{{ unesc1|e(unesc2, unesc3) }}\n"
            "{{ unslashed|addSlashes }}\n"
            "{{ uncapped|capFirst }}\n"
            "{{ uncapped2|capFirst }}\n"
        )
        data = {
            "unesc1": "<hack>",
            "unesc2": "\\&hack\\",
            "unesc3": "</hack>",
            "unslashed": '"I\'m using neste"',
            "uncapped": "neste",
            "uncapped2": "ǿxy",
        }
        expected = (
            "\n"
            "&lt;hack&gt;\\&amp;hack\\&lt;/hack&gt;\n"
            "&lt;hack&gt;\\&amp;hack\\&lt;/hack&gt;\n"
            '\\"I\'m using neste\\"\n'
            "Neste\n"
            "Ǿxy\n"
        )

        tm = Manager()
        t = tm.must_add(source, "testFormatters")
        assert t.render(data) == expected

    def test_user_formatter_receives_name(self):
        def tag(writer, name, *values):
            writer.write(f"[{name}:{value_bytes(*values).decode()}]".encode())

        tm = Manager(formatters={"tag": tag})
        t = tm.add("{{ x|tag }}", "t")
        assert t.render({"x": "v"}) == "[tag:v]"

    def test_user_formatter_overrides_builtin(self):
        def loud(writer, name, *values):
            writer.write(value_bytes(*values).upper())

        tm = Manager(formatters={"e": loud})
        assert tm.add("{{ x|e }}", "t").render({"x": "<b>"}) == "<B>"
        assert tm.add("{{ x|html }}", "u").render({"x": "<b>"}) == "&lt;b&gt;"


class TestLoneSurrogates:
    # json.loads('"\\ud800"') produces strings like these.
    def test_value_bytes(self):
        assert value_bytes("a\ud800b") == b"a\xed\xa0\x80b"

    def test_html(self):
        out = _run(html_formatter, "<a\ud800b>")
        assert out.startswith(b"&lt;a")
        assert out.endswith(b"b&gt;")

    def test_add_slashes(self):
        assert _run(add_slashes_formatter, '"\ud800"') == b'\\"\xed\xa0\x80\\"'

    def test_cap_first_leading_surrogate(self):
        assert _run(cap_first_formatter, "\ud800x") == b"\xed\xa0\x80x"

    def test_cap_first_trailing_surrogate(self):
        assert _run(cap_first_formatter, "a\ud800") == b"A\xed\xa0\x80"

    def test_render_in_template(self):
        tm = Manager()
        t = tm.add("[{{ x|capFirst }}|{{ x|e }}|{{ x|addSlashes }}]", "t")
        out = t.render({"x": "\ud800"})
        assert out.startswith("[")
        assert out.endswith("]")
        assert "\ufffd" in out
