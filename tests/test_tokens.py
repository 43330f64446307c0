import pytest

from vkgen.errors import EmitError
from vkgen.tokens import (
    Blank,
    Comment,
    Group,
    Ident,
    Keyword,
    Line,
    TokenError,
    attr,
    block,
    brackets,
    comma_list,
    format_items,
    generic,
    ident,
    kw,
    line,
    lit,
    p,
    parens,
    path,
    render_tokens,
    string,
)

# ===--- Token construction ---=== #


@pytest.mark.parametrize("text", ["x", "_x", "VkFoo", "r#type", "max_image_dimension_2d"])
def test_valid_identifiers(text: str) -> None:
    assert Ident(text).text == text


@pytest.mark.parametrize("text", ["", "_", "1st", "a-b", "type", "r#self", "r#crate", "fn"])
def test_invalid_identifiers_are_rejected(text: str) -> None:
    with pytest.raises(TokenError):
        Ident(text)


def test_keyword_must_be_a_keyword() -> None:
    assert Keyword("pub").text == "pub"
    with pytest.raises(TokenError):
        Keyword("public")


def test_group_rejects_unknown_delimiter() -> None:
    with pytest.raises(TokenError):
        Group("{")


def test_path_uses_keywords_for_path_roots() -> None:
    tokens = path("Self", "ERROR")

    assert isinstance(tokens[0], Keyword)
    assert render_tokens(tokens) == "Self::ERROR"


def test_string_literal_escapes_quotes_and_backslashes() -> None:
    assert string('a"b\\').text == '"a\\"b\\\\"'


# ===--- Rendering ---=== #


def test_field_spacing() -> None:
    tokens = [kw("pub"), ident("name"), p(":"), p("*const"), ident("c_char"), p(",")]

    assert render_tokens(tokens) == "pub name: *const c_char,"


def test_call_and_path_spacing() -> None:
    tokens = [ident("p_next"), p(":"), *path("core", "ptr", "null"), parens(), p(",")]

    assert render_tokens(tokens) == "p_next: core::ptr::null(),"


def test_generic_and_array_spacing() -> None:
    option = generic("Option", [ident("u32")])
    array = brackets([ident("u8"), p(";"), lit(4)])

    assert render_tokens(option) == "Option<u32>"
    assert render_tokens([ident("data"), p(":"), array]) == "data: [u8; 4]"


def test_comparison_operators_are_spaced() -> None:
    less = [kw("self"), p("."), lit(0), p("<"), lit(0)]
    greater = [ident("a"), p(">"), ident("b")]

    assert render_tokens(less) == "self.0 < 0"
    assert render_tokens(greater) == "a > b"


def test_generic_nests_function_type() -> None:
    fn = [kw("unsafe"), kw("extern"), string("system"), kw("fn"), parens(), p("->"), ident("u32")]

    assert render_tokens(generic("Option", fn)) == 'Option<unsafe extern "system" fn() -> u32>'


def test_negative_literal_and_return_arrow() -> None:
    tokens = [kw("fn"), ident("f"), parens(), p("->"), ident("i32"), p("="), p("-"), lit(1)]

    assert render_tokens(tokens) == "fn f() -> i32 = -1"


def test_comma_list_joins_parts() -> None:
    tokens = comma_list([[ident("a")], [ident("b")], [ident("c")]])

    assert render_tokens([parens(tokens)]) == "(a, b, c)"


# ===--- Items ---=== #


def test_block_with_attributes_and_comments() -> None:
    items = [
        Comment("Two-dimensional extent", doc=True),
        attr(ident("repr"), parens([ident("C")])),
        block(
            [kw("pub"), kw("struct"), ident("Extent2D")],
            [line(kw("pub"), ident("width"), p(":"), ident("u32"), p(","))],
        ),
        Blank(),
        attr(ident("allow"), parens([ident("dead_code")]), inner=True),
    ]

    assert format_items(items) == [
        "/// Two-dimensional extent",
        "#[repr(C)]",
        "pub struct Extent2D {",
        "    pub width: u32,",
        "}",
        "",
        "#![allow(dead_code)]",
    ]


def test_empty_block_and_suffix() -> None:
    items = [
        block([kw("pub"), kw("struct"), ident("Empty")]),
        block([kw("extern"), string("system")], [], suffix=";"),
    ]

    assert format_items(items) == ['pub struct Empty {}', 'extern "system" {};']


def test_nested_blocks_indent() -> None:
    inner = block([kw("fn"), ident("default"), parens()], [line(kw("Self"), p(";"))])
    outer = block([kw("impl"), ident("Default"), kw("for"), ident("Foo")], [inner])

    assert format_items([outer]) == [
        "impl Default for Foo {",
        "    fn default() {",
        "        Self;",
        "    }",
        "}",
    ]


def test_empty_comment_has_no_trailing_space() -> None:
    assert format_items([Comment("")]) == ["//"]


def test_long_line_breaks_parameter_list() -> None:
    params = comma_list(
        [[ident(f"argument_{i}"), p(":"), ident("u32")] for i in range(8)]
    )
    items = [line(kw("pub"), kw("fn"), ident("f"), parens(params), p(";"))]

    lines = format_items(items)

    assert lines[0] == "pub fn f("
    assert lines[1] == "    argument_0: u32,"
    assert lines[8] == "    argument_7: u32,"
    assert lines[9] == ");"
    assert all(len(text) <= 100 for text in lines)


def test_long_line_with_single_argument_stays_on_one_line() -> None:
    name = "a" * 120
    lines = format_items([line(ident("f"), parens([ident(name)]), p(";"))])

    assert lines == [f"f({name});"]


def test_wrapped_line_keeps_block_indent() -> None:
    params = comma_list([[ident(f"p{i}"), p(":"), ident("u64")] for i in range(12)])
    body = [line(kw("fn"), ident("g"), parens(params), p("->"), ident("u32"), p(";"))]

    lines = format_items([block([kw("extern"), string("system")], body)])

    assert lines[1] == "    fn g("
    assert lines[2] == "        p0: u64,"
    assert lines[-2] == "    ) -> u32;"


# ===--- FORMAT errors ---=== #


def test_empty_line_is_a_format_error() -> None:
    with pytest.raises(EmitError) as excinfo:
        format_items([Line(())])

    assert excinfo.value.code == "FORMAT"


def test_foreign_item_is_a_format_error() -> None:
    with pytest.raises(EmitError) as excinfo:
        format_items(["pub struct Foo;"])

    assert excinfo.value.code == "FORMAT"


def test_foreign_token_is_a_format_error() -> None:
    with pytest.raises(EmitError) as excinfo:
        format_items([line(ident("x"), 42)])

    assert excinfo.value.code == "FORMAT"
